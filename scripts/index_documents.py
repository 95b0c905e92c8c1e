import argparse
import asyncio
import os
import sys
from pathlib import Path

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv()

from simple_rag_server.config import Settings
from simple_rag_server.core.logging import configure_logging
from simple_rag_server.documents.processor import DocumentProcessor
from simple_rag_server.embeddings.embedder import Embedder
from simple_rag_server.services import build_collection
from simple_rag_server.vectors.gateway import VectorStoreGateway

TEXT_SUFFIXES = {".txt", ".csv"}


async def main(folder: Path) -> int:
    config = Settings()
    configure_logging(config.log_level)

    print("Initializing clients...")
    embedder = Embedder()
    if not embedder.is_available():
        print(f"No API key configured for embedding provider '{embedder.provider}'.")
        return 1

    gateway = VectorStoreGateway(
        build_collection(config),
        dimension=config.embedding_dimension,
        batch_size=config.upsert_batch_size,
    )
    if not await gateway.initialize():
        print("Vector store is not available.")
        return 1

    processor = DocumentProcessor(
        embedder,
        gateway,
        chunk_size=config.chunk_size,
        chunk_overlap=config.chunk_overlap,
        max_file_size=config.max_file_size,
    )

    files = sorted(p for p in folder.iterdir() if p.suffix.lower() in TEXT_SUFFIXES)
    print(f"Found {len(files)} files in {folder}.")

    total_chunks = 0
    for i, path in enumerate(files):
        print(f"Processing ({i+1}/{len(files)}): {path.name}")
        text = path.read_text(encoding="utf-8", errors="replace")
        if not text.strip():
            print("  empty, skipped")
            continue

        result = await processor.process_document(
            text,
            path.name,
            size_bytes=path.stat().st_size,
        )
        total_chunks += len(result.chunks)
        print(f"  {result.document.id}: {len(result.chunks)} chunks")

    print("Saving index...")
    await gateway.close()
    print(f"Done! Indexed {total_chunks} chunks.")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Index a folder of text documents.")
    parser.add_argument("folder", type=Path)
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.folder)))
