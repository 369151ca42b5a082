"""Markdown documentation output.

The agent only depends on the ``Generator`` protocol: anything with a
``generate(memory) -> Path`` method can turn the Knowledge Store into a
documentation site. ``MarkdownGenerator`` is the default implementation and
writes plain Markdown files to a local output directory:

  index.md          overview, understanding, table of contents, insights
  <category>.md     one file per non-empty category, sections in order
"""

import logging
from pathlib import Path
from typing import List, Protocol

from moles.memory import DocCategory, DocSection, KnowledgeStore

logger = logging.getLogger(__name__)

CATEGORY_TITLES = {
    DocCategory.OVERVIEW: "Overview",
    DocCategory.ARCHITECTURE: "Architecture",
    DocCategory.MODULE: "Modules",
    DocCategory.API: "API Reference",
    DocCategory.GUIDE: "Guides",
    DocCategory.OTHER: "Other",
}


class Generator(Protocol):
    def generate(self, memory: KnowledgeStore) -> Path:
        ...


class MarkdownGenerator:
    """Write the Knowledge Store out as Markdown files.

    Args:
        output_dir: Root directory for generated documents. Created on demand.
    """

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    def generate(self, memory: KnowledgeStore) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)

        written: List[DocCategory] = []
        for category in DocCategory:
            sections = memory.get_sections_by_category(category)
            if not sections:
                continue
            path = self.output_dir / f"{category.value}.md"
            path.write_text(self._render_category(category, sections), encoding="utf-8")
            logger.info("Wrote %d section(s) to %s", len(sections), path)
            written.append(category)

        index_path = self.output_dir / "index.md"
        index_path.write_text(self._render_index(memory, written), encoding="utf-8")
        logger.info("Wrote index to %s", index_path)

        return self.output_dir

    # ---- rendering ---------------------------------------------------------

    @staticmethod
    def _render_category(category: DocCategory, sections: List[DocSection]) -> str:
        parts = [f"# {CATEGORY_TITLES[category]}", ""]
        for section in sections:
            parts.append(f"## {section.title}")
            parts.append("")
            parts.append(section.content.strip())
            parts.append("")
        return "\n".join(parts)

    @staticmethod
    def _render_index(memory: KnowledgeStore, categories: List[DocCategory]) -> str:
        parts = ["# Documentation", ""]

        if memory.directory_structure:
            parts += ["## Overview", "", memory.directory_structure.strip(), ""]

        if memory.codebase_understanding:
            parts += ["## Understanding", "", memory.codebase_understanding.strip(), ""]

        if categories:
            parts += ["## Contents", ""]
            for category in categories:
                parts.append(f"- [{CATEGORY_TITLES[category]}]({category.value}.md)")
                for section in memory.get_sections_by_category(category):
                    parts.append(f"  - {section.title}")
            parts.append("")

        if memory.insights:
            parts += ["## Key Insights", ""]
            parts += [f"- {insight}" for insight in memory.insights]
            parts.append("")

        return "\n".join(parts)

