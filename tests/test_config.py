"""Configuration and wiring tests."""

import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from typer.testing import CliRunner

from memsync.app.cli import app
from memsync.app.config import MemSyncConfig
from memsync.app.services import build_services
from memsync.infrastructure.calendar import GoogleCalendarProvider, StaticCredentialProvider
from memsync.utils.logging import get_logger

from tests.fakes import HashingEmbedder


class ConfigTest(unittest.TestCase):
    """Test loading, saving and environment overrides."""

    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_missing_file_gives_defaults(self) -> None:
        with mock.patch.dict("os.environ", {}, clear=True):
            config = MemSyncConfig.load(self.root / "absent.json")

        self.assertEqual(config.embedding.provider, "openai")
        self.assertEqual(config.embedding.model, "text-embedding-3-small")
        self.assertEqual(config.embedding.dimension, 1536)
        self.assertEqual(config.vector.url, ":memory:")
        self.assertEqual(config.vector.memory_collection, "memories")
        self.assertEqual(config.vector.event_collection, "calendar_events")
        self.assertEqual(config.calendar.calendar_id, "primary")

    def test_save_and_load_round_trip_without_secrets(self) -> None:
        config = MemSyncConfig(data_dir=self.root)
        config.embedding.api_key = "sk-secret"
        config.vector.url = "http://localhost:6333"
        path = config.save(self.root / "memsync_config.json")

        raw = json.loads(path.read_text(encoding="utf-8"))
        self.assertNotIn("api_key", raw["embedding"])

        with mock.patch.dict("os.environ", {}, clear=True):
            loaded = MemSyncConfig.load(path)
        self.assertEqual(loaded.vector.url, "http://localhost:6333")
        self.assertIsNone(loaded.embedding.api_key)
        self.assertEqual(loaded.database_path, str(self.root / "memsync.duckdb"))

    def test_environment_overrides(self) -> None:
        env = {
            "MEMSYNC_EMBEDDING_PROVIDER": "sentence-transformers",
            "QDRANT_URL": "http://qdrant:6333",
            "MEMSYNC_DB_PATH": ":memory:",
            "MEMSYNC_LOG_LEVEL": "debug",
        }
        with mock.patch.dict("os.environ", env, clear=True):
            config = MemSyncConfig.load(self.root / "absent.json")

        self.assertEqual(config.embedding.provider, "sentence_transformers")
        self.assertEqual(config.vector.url, "http://qdrant:6333")
        self.assertEqual(config.database_path, ":memory:")
        self.assertEqual(config.log_level, "DEBUG")


class ServicesTest(unittest.IsolatedAsyncioTestCase):
    """Test wiring of adapters into coordinators."""

    async def test_build_services_end_to_end(self) -> None:
        config = MemSyncConfig(data_dir=Path(tempfile.gettempdir()))
        config.database.path = ":memory:"
        config.embedding.dimension = 64

        services = build_services(config, embedder=HashingEmbedder())
        self.assertIsInstance(services.provider, GoogleCalendarProvider)
        self.assertIsInstance(services.credentials, StaticCredentialProvider)

        async with services:
            await services.ensure_ready()
            record = await services.memories.add_memory("Favorite color is blue", "preference", "u1")
            results = await services.memories.similarity_search("what color do I like", 5)
            self.assertIn(record.id, [r.id for r in results])
            self.assertEqual(await services.calendar.fetch_events(record.created_at, record.created_at, "u1"), [])


class LoggingTest(unittest.TestCase):
    """Test logger naming."""

    def test_get_logger_uses_memsync_namespace(self) -> None:
        logger = get_logger("cli")
        self.assertEqual(logger.name, "memsync.cli")
        self.assertIs(get_logger("memsync.cli"), logger)


class CliTest(unittest.TestCase):
    """Test CLI commands that need no embedding calls."""

    def test_init_and_purge_orphans(self) -> None:
        runner = CliRunner()
        with tempfile.TemporaryDirectory() as tmp:
            env = {
                "MEMSYNC_DATA_DIR": tmp,
                "MEMSYNC_DB_PATH": str(Path(tmp) / "memsync.duckdb"),
                "OPENAI_API_KEY": "sk-test",
            }
            config_path = str(Path(tmp) / "memsync_config.json")

            result = runner.invoke(app, ["init", "--config", config_path], env=env)
            self.assertEqual(result.exit_code, 0, result.output)
            self.assertIn("MemSync initialized", result.output)
            self.assertTrue(Path(config_path).exists())
            self.assertTrue((Path(tmp) / "memsync.duckdb").exists())

            result = runner.invoke(app, ["purge-orphans", "--config", config_path], env=env)
            self.assertEqual(result.exit_code, 0, result.output)
            self.assertIn("memories: 0", result.output)

    def test_configuration_error_exits_nonzero(self) -> None:
        runner = CliRunner()
        with tempfile.TemporaryDirectory() as tmp:
            env = {
                "MEMSYNC_DATA_DIR": tmp,
                "MEMSYNC_DB_PATH": ":memory:",
                "MEMSYNC_EMBEDDING_PROVIDER": "word2vec",
            }
            result = runner.invoke(app, ["purge-orphans"], env=env)
            self.assertEqual(result.exit_code, 1)
            self.assertIn("Unknown embedding provider", result.output)


if __name__ == "__main__":
    unittest.main()
