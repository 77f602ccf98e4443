"""
Document compiler for pagedmd

Renders markdown files through an Engine and assembles them into the
article sequence of a paged HTML document.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from markdown_it.common.utils import escapeHtml

from .engine import Engine
from .errors import BuildError
from .log import LOG


@dataclass(frozen=True)
class RenderedDocument:
    """One rendered markdown file"""
    slug: str
    html: str
    path: Optional[str] = None


class Compiler:
    """
    Compiles markdown files to HTML articles

    Responsibilities:
    - Discover input files (manifest ordering or alphabetical)
    - Render each file with the engine
    - Wrap failures in BuildError naming the file
    - Assemble articles and collect plugin stylesheets
    """

    def __init__(self, engine: Engine) -> None:
        """
        Initialize compiler

        Args:
            engine: Configured engine used for every file
        """
        self.engine = engine

    def file_compile(self, path: Union[str, Path]) -> RenderedDocument:
        """
        Render a single markdown file.

        Args:
            path: Markdown file

        Returns:
            RenderedDocument whose slug is the file name without extension

        Raises:
            BuildError: the file cannot be read or rendered
        """
        path = Path(path)
        try:
            source = path.read_text(encoding='utf-8')
        except OSError as exc:
            raise BuildError(f"Cannot read markdown file {path}: {exc}", path=str(path)) from exc

        try:
            html = self.engine.render(source, source_path=str(path))
        except Exception as exc:
            raise BuildError(f"Failed to process markdown file {path}: {exc}", path=str(path)) from exc

        LOG(f"Compiled {path} ({len(html)} chars)", level=2)
        return RenderedDocument(slug=path.stem, html=html, path=str(path))

    def files_compile(self, paths: Iterable[Union[str, Path]]) -> List[RenderedDocument]:
        """Render files in the given order"""
        return [self.file_compile(path) for path in paths]

    def paths_discover(self, input_path: Union[str, Path], files: Optional[Sequence[str]] = None) -> List[Path]:
        """
        Resolve the markdown files making up a document.

        Args:
            input_path: A markdown file or a directory
            files: Explicit ordering (relative to input_path), e.g. a
                manifest's ``files`` list; otherwise every ``*.md`` in the
                directory, alphabetically

        Raises:
            BuildError: a listed file does not exist
        """
        input_path = Path(input_path)
        if not input_path.is_dir():
            return [input_path]

        if files:
            paths = [input_path / name for name in files]
            for path in paths:
                if not path.is_file():
                    raise BuildError(f"File not found: {path}", path=str(path))
            LOG(f"Using manifest file ordering ({len(paths)} files)", level=2)
            return paths

        return sorted(p for p in input_path.iterdir() if p.is_file() and p.suffix == '.md')

    def directory_compile(self, input_path: Union[str, Path], files: Optional[Sequence[str]] = None) -> List[RenderedDocument]:
        """
        Discover and render all files of a document.

        Raises:
            BuildError: nothing to render, or any file fails
        """
        documents = self.files_compile(self.paths_discover(input_path, files))
        if not documents:
            raise BuildError("No markdown files found in input path", path=str(input_path))
        LOG(f"Processed {len(documents)} markdown file(s)", level=1)
        return documents

    @staticmethod
    def articles_assemble(documents: Iterable[RenderedDocument]) -> str:
        """Concatenate documents as <article id="slug"> elements"""
        return "\n".join(f'<article id="{escapeHtml(doc.slug)}">{doc.html}</article>' for doc in documents)

    def stylesheets_collect(self) -> str:
        """CSS of the engine's plugins, joined in registration order"""
        return "\n".join(self.engine.stylesheets)
