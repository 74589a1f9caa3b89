"""Category tree discovery for the ingestion root."""

from pathlib import Path
from typing import Iterator

from .models import CategoryEntry


class CategoryTreeWalker:
    """Walks a category/subcategory/sub-subcategory directory tree for images.

    Layout rules:
        root/<category>/<file>                          category is a leaf
        root/<category>/<sub>/<file>                    subcategory is a leaf
        root/<category>/<sub>/<subsub>/<file>           sub-subcategory files

    When a subcategory contains sub-subdirectories, loose files directly
    inside that subcategory are not yielded.
    """

    IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}

    @classmethod
    def is_image(cls, filepath: str | Path) -> bool:
        """Check if a file is an accepted image based on extension."""
        return Path(filepath).suffix.lower() in cls.IMAGE_EXTENSIONS

    @staticmethod
    def _subdirectories(path: Path) -> list[Path]:
        return sorted((p for p in path.iterdir() if p.is_dir()), key=lambda p: p.name)

    @classmethod
    def _image_files(cls, path: Path) -> list[Path]:
        # Matched on the name only; unreadable entries are handled by the caller.
        return sorted((p for p in path.iterdir() if cls.is_image(p.name)), key=lambda p: p.name)

    @classmethod
    def walk(cls, root: str | Path) -> Iterator[CategoryEntry]:
        """
        Yield every ingestible image under root in lexical, depth-first order.

        Args:
            root: Ingestion root whose subdirectories are categories

        Yields:
            CategoryEntry tuples (path, category, subcategory, subsubcategory)

        Raises:
            OSError: If root or any category directory cannot be listed
        """
        root = Path(root)

        for category_dir in cls._subdirectories(root):
            category = category_dir.name
            subcategories = cls._subdirectories(category_dir)

            if not subcategories:
                for filepath in cls._image_files(category_dir):
                    yield CategoryEntry(filepath, category, None, None)
                continue

            for sub_dir in subcategories:
                subsub_dirs = cls._subdirectories(sub_dir)

                if not subsub_dirs:
                    for filepath in cls._image_files(sub_dir):
                        yield CategoryEntry(filepath, category, sub_dir.name, None)
                    continue

                for subsub_dir in subsub_dirs:
                    for filepath in cls._image_files(subsub_dir):
                        yield CategoryEntry(filepath, category, sub_dir.name, subsub_dir.name)
