from imgvault.core.models import CategoryEntry
from imgvault.core.walker import CategoryTreeWalker


def _touch(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x")
    return path


def _triples(entries):
    return [(e.path.name, e.category, e.subcategory, e.subsubcategory) for e in entries]


def test_leaf_category_yields_no_subcategories(images_root):
    _touch(images_root / "Buttons" / "b.png")
    _touch(images_root / "Buttons" / "a.JPG")

    entries = list(CategoryTreeWalker.walk(images_root))

    assert _triples(entries) == [
        ("a.JPG", "Buttons", None, None),
        ("b.png", "Buttons", None, None),
    ]


def test_leaf_subcategory(images_root):
    _touch(images_root / "Ribbons" / "Velvet" / "a.jpg")

    entries = list(CategoryTreeWalker.walk(images_root))

    assert entries == [
        CategoryEntry(images_root / "Ribbons" / "Velvet" / "a.jpg", "Ribbons", "Velvet", None)
    ]


def test_subsubcategories_skip_loose_subcategory_files(images_root):
    _touch(images_root / "Ribbons" / "Satin" / "loose.jpg")
    _touch(images_root / "Ribbons" / "Satin" / "Cotton" / "c.webp")
    _touch(images_root / "Ribbons" / "Satin" / "Silk" / "s.jpeg")

    entries = list(CategoryTreeWalker.walk(images_root))

    assert _triples(entries) == [
        ("c.webp", "Ribbons", "Satin", "Cotton"),
        ("s.jpeg", "Ribbons", "Satin", "Silk"),
    ]


def test_category_with_subdirectories_skips_its_loose_files(images_root):
    _touch(images_root / "Lace" / "loose.jpg")
    _touch(images_root / "Lace" / "Border" / "l.jpg")

    assert _triples(CategoryTreeWalker.walk(images_root)) == [("l.jpg", "Lace", "Border", None)]


def test_non_images_and_root_files_are_ignored(images_root):
    _touch(images_root / "top.jpg")
    _touch(images_root / "Buttons" / "notes.txt")
    _touch(images_root / "Buttons" / "anim.gif")
    _touch(images_root / "Buttons" / "ok.webp")

    assert _triples(CategoryTreeWalker.walk(images_root)) == [("ok.webp", "Buttons", None, None)]


def test_files_deeper_than_three_levels_are_ignored(images_root):
    _touch(images_root / "A" / "B" / "C" / "c.jpg")
    _touch(images_root / "A" / "B" / "C" / "D" / "deep.jpg")

    assert _triples(CategoryTreeWalker.walk(images_root)) == [("c.jpg", "A", "B", "C")]


def test_traversal_is_lexical_and_depth_first(images_root):
    _touch(images_root / "Zips" / "z.jpg")
    _touch(images_root / "Alpha" / "Two" / "b.jpg")
    _touch(images_root / "Alpha" / "One" / "a.jpg")

    assert [e.path.name for e in CategoryTreeWalker.walk(images_root)] == ["a.jpg", "b.jpg", "z.jpg"]


def test_walk_is_lazy(images_root):
    _touch(images_root / "Buttons" / "a.jpg")
    walker = CategoryTreeWalker.walk(images_root)

    assert next(walker).category == "Buttons"
    assert next(walker, None) is None


def test_is_image_is_case_insensitive():
    assert CategoryTreeWalker.is_image("photo.JPEG")
    assert CategoryTreeWalker.is_image("photo.Webp")
    assert not CategoryTreeWalker.is_image("photo.tiff")
