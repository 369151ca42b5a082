"""
Knowledge Store: everything the agent has learned during one run.

The store is created once by the coordinator and shared by reference with the
executor and its tools; the reflector and generator read the same live
instance. Nothing in it is ever removed: understanding only grows, analyzed
files are upserted by path, sections and insights are append-only.

``get_summary()`` renders the store for prompt injection. It is a pure
function of the current field values and an optional character budget, so
two calls without a mutation in between return identical text.
"""

import json
import posixpath
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class DocCategory(str, Enum):
    OVERVIEW = "overview"
    ARCHITECTURE = "architecture"
    MODULE = "module"
    API = "api"
    GUIDE = "guide"
    OTHER = "other"


@dataclass
class AnalyzedFile:
    path: str
    summary: str
    exports: Optional[List[str]] = None
    dependencies: Optional[List[str]] = None


@dataclass
class DocSection:
    id: str
    title: str
    content: str
    category: DocCategory
    order: int


def normalize_path(path: str) -> str:
    """Canonical key for ``analyzed_files``.

    ``./src/a.py``, ``src//a.py`` and ``/src/a.py`` all map to ``src/a.py``.
    """
    cleaned = path.strip().replace("\\", "/")
    if not cleaned:
        return cleaned
    cleaned = posixpath.normpath(cleaned).lstrip("/")
    return "" if cleaned == "." else cleaned


# Marker appended when a summary list is cut to fit the budget
_MORE = "- ... and {count} more"


class KnowledgeStore:
    """Accumulating, never-shrinking record of codebase knowledge."""

    def __init__(self):
        self.codebase_understanding: str = ""
        self.analyzed_files: Dict[str, AnalyzedFile] = {}
        self.document_sections: List[DocSection] = []
        self.insights: List[str] = []
        self.directory_structure: str = ""

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_directory_structure(self, structure: str) -> None:
        self.directory_structure = structure

    def add_understanding(self, content: str) -> None:
        """Append to the understanding text, never replacing prior content."""
        content = content.strip()
        if not content:
            return
        if self.codebase_understanding:
            self.codebase_understanding += f"\n\n{content}"
        else:
            self.codebase_understanding = content

    def mark_file_analyzed(self, file: AnalyzedFile) -> AnalyzedFile:
        """Upsert by normalized path. Re-marking a path overwrites its entry."""
        key = normalize_path(file.path)
        entry = AnalyzedFile(
            path=key,
            summary=file.summary,
            exports=list(file.exports) if file.exports is not None else None,
            dependencies=list(file.dependencies) if file.dependencies is not None else None,
        )
        self.analyzed_files[key] = entry
        return entry

    def add_doc_section(self, title: str, content: str, category: DocCategory) -> DocSection:
        """Append a section; id and per-category order are assigned here."""
        category = DocCategory(category)
        section = DocSection(
            id=f"{category.value}-{len(self.document_sections)}",
            title=title,
            content=content,
            category=category,
            order=sum(1 for s in self.document_sections if s.category == category),
        )
        self.document_sections.append(section)
        return section

    def add_insight(self, insight: str) -> bool:
        """Record an insight. Returns False when the exact text is already known."""
        if insight in self.insights:
            return False
        self.insights.append(insight)
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_file_analyzed(self, path: str) -> bool:
        return normalize_path(path) in self.analyzed_files

    def get_analyzed_file(self, path: str) -> Optional[AnalyzedFile]:
        return self.analyzed_files.get(normalize_path(path))

    def get_sections_by_category(self, category: DocCategory) -> List[DocSection]:
        category = DocCategory(category)
        sections = [s for s in self.document_sections if s.category == category]
        return sorted(sections, key=lambda s: s.order)

    def stats(self) -> Dict[str, int]:
        return {
            "files": len(self.analyzed_files),
            "sections": len(self.document_sections),
            "insights": len(self.insights),
        }

    # ------------------------------------------------------------------
    # Prompt summary
    # ------------------------------------------------------------------

    def get_summary(self, max_chars: Optional[int] = None) -> str:
        """Render the store as Markdown for a step prompt.

        Without a budget everything is rendered. With ``max_chars`` the
        understanding keeps its most recent tail and each list keeps its most
        recent entries, halving until the text fits; the result is then
        hard-capped at ``max_chars``.
        """
        text = self._render_summary(None)
        if max_chars is None or len(text) <= max_chars:
            return text

        limit = max(
            len(self.analyzed_files),
            len(self.insights),
            len(self.document_sections),
            1,
        )
        while True:
            limit = max(limit // 2, 1)
            text = self._render_summary(limit, max_chars // 3)
            if len(text) <= max_chars or limit == 1:
                break

        return text[:max_chars]

    def _render_summary(self, item_limit: Optional[int], text_limit: Optional[int] = None) -> str:
        parts: List[str] = []

        if self.directory_structure:
            parts.append(f"## Directory Structure\n{self.directory_structure}")

        if self.codebase_understanding:
            understanding = self.codebase_understanding
            if text_limit is not None and len(understanding) > text_limit:
                understanding = "..." + understanding[-text_limit:]
            parts.append(f"## Understanding\n{understanding}")

        if self.analyzed_files:
            lines = [f"- {f.path}: {f.summary}" for f in self.analyzed_files.values()]
            parts.append(
                f"## Analyzed Files ({len(self.analyzed_files)})\n"
                + "\n".join(_tail(lines, item_limit))
            )

        if self.insights:
            lines = [f"- {i}" for i in self.insights]
            parts.append("## Key Insights\n" + "\n".join(_tail(lines, item_limit)))

        if self.document_sections:
            lines = [f"- [{s.category.value}] {s.title}" for s in self.document_sections]
            parts.append("## Generated Sections\n" + "\n".join(_tail(lines, item_limit)))

        return "\n\n".join(parts)

    # ------------------------------------------------------------------
    # Serialization (write-only snapshot for the state directory)
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "codebaseUnderstanding": self.codebase_understanding,
            "analyzedFiles": [asdict(f) for f in self.analyzed_files.values()],
            "documentSections": [
                {**asdict(s), "category": s.category.value} for s in self.document_sections
            ],
            "insights": list(self.insights),
            "directoryStructure": self.directory_structure,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)


def _tail(lines: List[str], limit: Optional[int]) -> List[str]:
    """Keep the most recent ``limit`` lines, noting how many were dropped."""
    if limit is None or len(lines) <= limit:
        return lines
    dropped = len(lines) - limit
    return [_MORE.format(count=dropped)] + lines[-limit:]
