import json
import logging
import os
import re
import shutil
from pathlib import Path
from typing import Optional

from repochat.core.models.document import Document

logger = logging.getLogger(__name__)

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]")


class JsonCorpusCache:
    """Corpus cache storing one documents.json per repository id."""

    def __init__(self, base_path: str = "./.repochat/corpus"):
        """Initialize cache.

        Args:
            base_path: Directory holding one sub-directory per repository.
        """
        self._base_path = Path(base_path)

    def _repo_dir(self, repo_id: str) -> Path:
        return self._base_path / _UNSAFE_RE.sub("_", repo_id)

    def _docs_file(self, repo_id: str) -> Path:
        return self._repo_dir(repo_id) / "documents.json"

    def load(self, repo_id: str) -> Optional[list[Document]]:
        """Load cached documents.

        Returns None if the repository was never cached or its cache file is
        unreadable, so callers rebuild from the checkout.
        """
        docs_file = self._docs_file(repo_id)
        if not docs_file.exists():
            return None

        try:
            with open(docs_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            documents = [Document.from_dict(item) for item in data]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring corrupt corpus cache for {repo_id}: {e}")
            return None

        logger.debug(f"Loaded {len(documents)} cached docs for {repo_id}")
        return documents

    def save(self, repo_id: str, documents: list[Document]) -> None:
        """Write documents atomically (temp file + rename)."""
        repo_dir = self._repo_dir(repo_id)
        repo_dir.mkdir(parents=True, exist_ok=True)

        docs_file = self._docs_file(repo_id)
        tmp_file = docs_file.with_suffix(".json.tmp")
        with open(tmp_file, "w", encoding="utf-8") as f:
            json.dump([d.to_dict() for d in documents], f, ensure_ascii=False, indent=2)
        os.replace(tmp_file, docs_file)

        logger.info(f"Cached {len(documents)} docs for {repo_id}")

    def delete(self, repo_id: str) -> None:
        repo_dir = self._repo_dir(repo_id)
        if repo_dir.exists():
            shutil.rmtree(repo_dir)
            logger.info(f"Deleted cached corpus for {repo_id}")
