"""
Read-through snapshot store for the FAQ and homestay knowledge base.

The admin console exports FAQs and homestays as JSON; this store loads them,
drops malformed records and hands out immutable snapshots. Snapshots are cached
for a TTL and can be invalidated explicitly after an edit.
"""

import json
import os
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import logging

from .models import DataError, FAQEntry, Homestay, KnowledgeSnapshot

logger = logging.getLogger("Inap")


class KnowledgeStore:
    """
    Snapshot accessor with a TTL read-through cache.
    """

    def __init__(
        self,
        data_dir: str,
        faq_file: str = "faqs.json",
        homestay_file: str = "homestays.json",
        general_knowledge_file: str = "general_knowledge.txt",
        ttl: int = 60,
    ):
        """
        Initialize the store.

        Args:
            data_dir: Directory holding the exported knowledge files
            faq_file: FAQ export (JSON list of records)
            homestay_file: Homestay export (JSON list of records)
            general_knowledge_file: Free-text operator notes
            ttl: Seconds a loaded snapshot stays valid; 0 disables caching
        """
        self.data_dir = Path(data_dir)
        self.faq_path = self.data_dir / faq_file
        self.homestay_path = self.data_dir / homestay_file
        self.general_knowledge_path = self.data_dir / general_knowledge_file
        self.ttl = ttl
        self._snapshot: Optional[KnowledgeSnapshot] = None
        self._loaded_at = 0.0
        self._lock = threading.Lock()
        self.stats = {
            'hits': 0,
            'loads': 0,
            'invalidations': 0,
            'skipped_records': 0,
        }

    @classmethod
    def from_config(cls, config) -> "KnowledgeStore":
        return cls(
            data_dir=config.DATA_PATH,
            faq_file=config.FAQ_FILE,
            homestay_file=config.HOMESTAY_FILE,
            general_knowledge_file=config.GENERAL_KNOWLEDGE_FILE,
            ttl=config.SNAPSHOT_CACHE_TTL,
        )

    def _is_expired(self) -> bool:
        return self.ttl <= 0 or time.time() - self._loaded_at > self.ttl

    def get_snapshot(self) -> KnowledgeSnapshot:
        """Return the cached snapshot, reloading from disk when stale."""
        with self._lock:
            if self._snapshot is not None and not self._is_expired():
                self.stats['hits'] += 1
                return self._snapshot

            self._snapshot = self._load_snapshot()
            self._loaded_at = time.time()
            self.stats['loads'] += 1
            return self._snapshot

    def invalidate(self) -> None:
        """Drop the cached snapshot so the next read goes to disk."""
        with self._lock:
            self._snapshot = None
            self._loaded_at = 0.0
            self.stats['invalidations'] += 1
        logger.info("Knowledge snapshot invalidated")

    def _load_snapshot(self) -> KnowledgeSnapshot:
        faqs, skipped_faqs = self._parse_records(self._read_json_list(self.faq_path), FAQEntry.from_record, "FAQ")
        homestays, skipped_homestays = self._parse_records(
            self._read_json_list(self.homestay_path), Homestay.from_record, "homestay"
        )
        self.stats['skipped_records'] += skipped_faqs + skipped_homestays

        general_knowledge = ""
        if self.general_knowledge_path.exists():
            try:
                general_knowledge = self.general_knowledge_path.read_text(encoding='utf-8').strip()
            except OSError as e:
                logger.warning(f"Failed to read general knowledge from {self.general_knowledge_path}: {e}")

        active = sum(1 for faq in faqs if faq.is_active)
        logger.info(
            f"Loaded knowledge snapshot: {len(faqs)} FAQs ({active} active), "
            f"{len(homestays)} homestays, {len(general_knowledge)} chars of general knowledge"
        )
        return KnowledgeSnapshot(faqs=tuple(faqs), homestays=tuple(homestays), general_knowledge=general_knowledge)

    @staticmethod
    def _read_json_list(path: Path) -> List[Any]:
        if not path.exists():
            logger.warning(f"Knowledge file not found: {path}")
            return []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read {path}: {e}")
            return []

        # Accept either a bare list or {"items": [...]}
        if isinstance(data, dict):
            data = data.get('items', [])
        if not isinstance(data, list):
            logger.error(f"{path} does not contain a list of records")
            return []
        return data

    @staticmethod
    def _parse_records(records: List[Any], parser, kind: str) -> Tuple[list, int]:
        parsed = []
        skipped = 0
        for index, record in enumerate(records):
            try:
                parsed.append(parser(record))
            except DataError as e:
                skipped += 1
                logger.warning(f"Skipping malformed {kind} record #{index}: {e}")
        return parsed, skipped

    def write_embeddings(self, embeddings: Dict[str, List[float]]) -> int:
        """
        Store precomputed embeddings on the FAQ export, keyed by question.

        Returns:
            Number of records updated
        """
        records = self._read_json_list(self.faq_path)
        updated = 0
        for record in records:
            if not isinstance(record, dict):
                continue
            question = str(record.get('question') or '').strip()
            if question in embeddings:
                record['embedding'] = list(embeddings[question])
                updated += 1

        if updated:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            tmp_path = self.faq_path.with_suffix('.tmp')
            try:
                with open(tmp_path, 'w', encoding='utf-8') as f:
                    json.dump(records, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, self.faq_path)
            finally:
                if tmp_path.exists():
                    tmp_path.unlink()
            logger.info(f"Wrote embeddings for {updated} FAQs to {self.faq_path}")
            self.invalidate()

        return updated
