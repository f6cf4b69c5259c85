"""Bulk ingestion of a directory of .md / .txt documents into the index.

Orchestrates:
- File discovery
- Decoding and validation
- Chunking, embedding and upsert (via the document pipeline)
"""
from pathlib import Path
from typing import Any, Dict, List
import structlog

from rightsteps import config
from rightsteps.errors import RightStepsError
from rightsteps.pipeline import DocumentPipeline, decode_upload

logger = structlog.get_logger()


class DirectoryIngest:
    """Index every supported document under a directory.

    File names in the index are paths relative to ``docs_dir``.
    """

    def __init__(self, pipeline: DocumentPipeline, docs_dir: Path):
        self.pipeline = pipeline
        self.docs_dir = Path(docs_dir)
        self.stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            "files_processed": 0,
            "files_failed": 0,
            "chunks_created": 0,
            "chunks_stored": 0,
        }

    def discover_files(self) -> List[Path]:
        """Find all .md / .txt files recursively.

        Raises:
            FileNotFoundError: If the directory doesn't exist
        """
        if not self.docs_dir.is_dir():
            raise FileNotFoundError(f"Documents directory not found: {self.docs_dir}")

        files = sorted(
            path
            for path in self.docs_dir.rglob("*")
            if path.is_file() and path.suffix.lower() in config.ALLOWED_EXTENSIONS
        )

        logger.info("documents_discovered", count=len(files), docs_dir=str(self.docs_dir))

        return files

    async def ingest_file(self, file_path: Path) -> Dict[str, Any]:
        """Index a single file, replacing any chunks stored under its name."""
        file_name = file_path.relative_to(self.docs_dir).as_posix()
        content = decode_upload(file_name, None, file_path.read_bytes())

        stored, total = await self.pipeline.index_document(file_name, content)

        self.stats["files_processed"] += 1
        self.stats["chunks_created"] += total
        self.stats["chunks_stored"] += stored

        return {"file_name": file_name, "chunks_created": total, "chunks_stored": stored}

    async def ingest_all(self, progress_callback=None) -> Dict[str, Any]:
        """Index every discovered file, continuing past per-file failures.

        Args:
            progress_callback: Optional callback function(current, total, file_path)

        Returns:
            Dictionary with ingestion statistics
        """
        self.stats = self._empty_stats()
        files = self.discover_files()

        for idx, file_path in enumerate(files, 1):
            if progress_callback:
                progress_callback(idx, len(files), file_path)

            try:
                await self.ingest_file(file_path)
            except (RightStepsError, OSError) as e:
                logger.error(
                    "file_ingestion_failed",
                    path=str(file_path),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                self.stats["files_failed"] += 1

        logger.info("ingest_all_completed", stats=self.stats)

        return self.stats
