#!/usr/bin/env python
"""Validate setup - check dependencies, configuration and remote services."""
import sys
import asyncio
from pathlib import Path

# Color codes for terminal output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
RESET = "\033[0m"

def print_success(msg):
    print(f"{GREEN}✓{RESET} {msg}")

def print_error(msg):
    print(f"{RED}✗{RESET} {msg}")

def print_info(msg):
    print(f"{BLUE}ℹ{RESET} {msg}")

def print_warning(msg):
    print(f"{YELLOW}⚠{RESET} {msg}")

def print_section(title):
    print(f"\n{BLUE}{'='*60}{RESET}")
    print(f"{BLUE}{title:^60}{RESET}")
    print(f"{BLUE}{'='*60}{RESET}\n")

async def main():
    print_section("chatme - Setup Validation")

    errors = []
    warnings = []

    # 1. Python version check
    print_section("1. Python Environment")
    python_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    print_info(f"Python version: {python_version}")
    if sys.version_info >= (3, 10):
        print_success("Python version >= 3.10")
    else:
        print_error("Python version < 3.10 (required)")
        errors.append("Python version too old")

    in_venv = sys.base_prefix != sys.prefix
    if in_venv:
        print_success("Running in virtual environment")
    else:
        print_warning("Not running in virtual environment (recommended)")
        warnings.append("Not in venv")

    # 2. Import core dependencies
    print_section("2. Core Dependencies")

    dependencies = [
        ("quart", "Quart web framework"),
        ("hypercorn", "Hypercorn ASGI server"),
        ("httpx", "HTTP client"),
        ("playwright", "Headless browser automation"),
        ("faiss", "FAISS vector store"),
        ("numpy", "Numerical arrays"),
        ("structlog", "Structured logging"),
    ]

    for module_name, description in dependencies:
        try:
            __import__(module_name)
            print_success(f"{description:30} ({module_name})")
        except ImportError as e:
            print_error(f"{description:30} ({module_name}) - {e}")
            errors.append(f"Missing: {module_name}")

    # 3. Test configuration
    print_section("3. Configuration")

    sys.path.insert(0, str(Path(__file__).parent.parent))
    from chatme.config import load_settings
    from chatme.errors import ChatmeError, ConfigError

    try:
        settings = load_settings()
    except ConfigError as e:
        print_error("Configuration is incomplete")
        for name in e.missing:
            print_info(f"  Set {name}")
        print_info(f"  {e}")
        errors.append("Config loading failed")
        return errors, warnings

    print_success("Config loaded successfully")
    print_info(f"  Vector store: {settings.vector_store_backend}")
    print_info(f"  Collection: {settings.collection_name} ({settings.similarity_metric})")
    print_info(f"  Embedding model: {settings.embedding_model} (dim={settings.embedding_dimension})")
    print_info(f"  Chat model: {settings.chat_model}")
    print_info(f"  Chunk size: {settings.chunk_size} chars, overlap {settings.chunk_overlap}")

    from chatme.services import build_services
    services = build_services(settings)

    # 4. Embedding service
    print_section("4. Embedding Service")

    try:
        vector = await services.embedder.embed("test")
        print_success(f"Embedding API working (dimension: {len(vector)})")
    except ChatmeError as e:
        print_error(f"Embedding check failed: {e}")
        errors.append(f"Embedding error: {e}")

    # 5. Vector store
    print_section("5. Vector Store")

    if await services.store.ping():
        print_success(f"Vector store reachable ({settings.vector_store_backend})")
    else:
        print_error("Cannot reach the vector store")
        errors.append("Vector store unreachable")

    # 6. Browser
    print_section("6. Headless Browser")

    try:
        from chatme.rag.extractor import launch_playwright_session
        session = await launch_playwright_session()
        await session.close()
        print_success("Chromium launches")
    except Exception as e:
        print_error(f"Chromium failed to launch: {e}")
        print_info("  Run: playwright install chromium")
        errors.append("Browser not installed")

    await services.aclose()

    # 7. Summary
    print_section("Summary")

    if not errors:
        print_success("All checks passed! ✨")
    else:
        print_error(f"Found {len(errors)} error(s):")
        for i, error in enumerate(errors, 1):
            print(f"  {i}. {error}")

    if warnings:
        print_warning(f"\nFound {len(warnings)} warning(s):")
        for i, warning in enumerate(warnings, 1):
            print(f"  {i}. {warning}")

    print()
    return errors, warnings

if __name__ == "__main__":
    errors, warnings = asyncio.run(main())
    sys.exit(1 if errors else 0)
