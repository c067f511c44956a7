"""
Unit tests for the command line interface.

Tests cover:
- Argument parsing and configuration precedence
- Commands run against an in-memory database
- Exit codes of main()
"""

import asyncio

import pytest

from shadowswap import cli
from shadowswap.backup import BackupManager
from shadowswap.config import ENV_VARIABLES, MigrationConfig
from shadowswap.reports import FAILURE_REPORT, FINAL_REPORT, VERIFICATION_REPORT
from shadowswap.storage import InMemoryDatabase
from shadowswap.transformer import transform_product
from tests.fixtures import FIXED_NOW, legacy_product, product_set


class ClosableDatabase(InMemoryDatabase):
    """In-memory database standing in for a Motor connection."""

    closed = False

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    # Values loaded from .env files are removed again on teardown
    for variable in ENV_VARIABLES:
        monkeypatch.setenv(variable, "")
        monkeypatch.delenv(variable)


@pytest.fixture
def config(tmp_path):
    return MigrationConfig(
        report_dir=str(tmp_path / "reports"),
        backup_dir=str(tmp_path / "backups"),
    )


def _args(*argv):
    return cli.build_parser().parse_args(list(argv))


class TestParser:
    """Tests for build_parser and config_from_args."""

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            _args()

    def test_migrate_flags(self):
        args = _args("--report-dir", "out", "migrate", "--batch-size", "50")
        assert args.command == "migrate"
        assert args.batch_size == 50
        assert args.report_dir == "out"
        assert args.rollback_on_post_validation_failure is None

    def test_environment_is_used(self, monkeypatch):
        monkeypatch.setenv("MIGRATION_BATCH_SIZE", "40")
        monkeypatch.setenv("MONGODB_URI", "mongodb://db:27017/shop")

        config = cli.config_from_args(_args("migrate"))

        assert config.batch_size == 40
        assert config.database_url == "mongodb://db:27017/shop"

    def test_flags_override_environment(self, monkeypatch):
        monkeypatch.setenv("MIGRATION_BATCH_SIZE", "40")
        config = cli.config_from_args(
            _args("migrate", "--batch-size", "10", "--rollback-on-post-validation-failure")
        )
        assert config.batch_size == 10
        assert config.rollback_on_post_validation_failure is True

    def test_non_migrate_commands_use_defaults(self):
        config = cli.config_from_args(_args("verify", "products", "products_v2"))
        assert config.batch_size == 25
        assert config.source_collection == "products"


class TestRunCommand:
    """Tests for run_command against an in-memory database."""

    @pytest.mark.asyncio
    async def test_migrate(self, seeded_database, config):
        code = await cli.run_command(_args("migrate"), config, seeded_database)

        assert code == cli.EXIT_OK
        assert (config.report_path / FINAL_REPORT).exists()

    @pytest.mark.asyncio
    async def test_failed_migration_exits_nonzero(self, database, config):
        code = await cli.run_command(_args("migrate"), config, database)

        assert code == cli.EXIT_FAILED
        assert (config.report_path / FAILURE_REPORT).exists()

    @pytest.mark.asyncio
    async def test_verify(self, database, config):
        documents = product_set(5)
        await database.seed("products", documents)
        await database.seed(
            "products_v2", [transform_product(d, now=FIXED_NOW) for d in documents]
        )

        code = await cli.run_command(_args("verify", "products", "products_v2"), config, database)

        assert code == cli.EXIT_OK
        assert (config.report_path / VERIFICATION_REPORT).exists()

    @pytest.mark.asyncio
    async def test_verify_failure(self, database, config):
        await database.seed("products", product_set(5))
        await database.seed("products_v2", [])

        code = await cli.run_command(_args("verify", "products", "products_v2"), config, database)
        assert code == cli.EXIT_FAILED

    @pytest.mark.asyncio
    async def test_optimize_indexes(self, database, config):
        await database.seed(
            "products_v2", [transform_product(d, now=FIXED_NOW) for d in product_set(5)]
        )

        code = await cli.run_command(_args("optimize-indexes", "products_v2"), config, database)

        assert code == cli.EXIT_OK
        assert len(await database["products_v2"].list_indexes()) == 12

    @pytest.mark.asyncio
    async def test_rollback(self, database, config):
        await database.seed("products", [transform_product(legacy_product(), now=FIXED_NOW)])
        await database.seed("products_backup_1", [legacy_product()])

        code = await cli.run_command(_args("rollback", "products_backup_1"), config, database)

        assert code == cli.EXIT_OK
        assert await database.list_collection_names() == ["products"]

    @pytest.mark.asyncio
    async def test_restore(self, seeded_database, config):
        artifact = await BackupManager(config.backup_dir).create_backup(seeded_database["products"])

        code = await cli.run_command(
            _args("restore", str(artifact.path), "products_restored"), config, seeded_database
        )

        assert code == cli.EXIT_OK
        assert await seeded_database["products_restored"].count_documents() == 30


class TestMain:
    """Tests for main() exit codes."""

    @pytest.fixture
    def connected(self, monkeypatch):
        database = ClosableDatabase("catalog")
        monkeypatch.setattr(
            cli.MotorDatabase, "connect", classmethod(lambda cls, url, name=None: database)
        )
        return database

    def test_invalid_configuration(self, tmp_path):
        code = cli.main(
            ["--env-file", str(tmp_path / "missing.env"), "migrate", "--batch-size", "0"]
        )
        assert code == cli.EXIT_USAGE

    def test_rollback_command_closes_connection(self, connected, tmp_path):
        asyncio.run(connected.seed("products_backup_1", [legacy_product()]))

        code = cli.main(
            ["--env-file", str(tmp_path / "missing.env"), "rollback", "products_backup_1"]
        )

        assert code == cli.EXIT_OK
        assert connected.closed is True

    def test_missing_backup_exits_failed(self, connected, tmp_path):
        code = cli.main(
            ["--env-file", str(tmp_path / "missing.env"), "rollback", "products_backup_404"]
        )

        assert code == cli.EXIT_FAILED
        assert connected.closed is True

    def test_env_file_is_loaded(self, connected, tmp_path):
        env_file = tmp_path / "migration.env"
        env_file.write_text(f"MIGRATION_REPORT_DIR={tmp_path / 'env-reports'}\n")

        code = cli.main(["--env-file", str(env_file), "migrate"])

        assert code == cli.EXIT_FAILED
        assert (tmp_path / "env-reports" / FAILURE_REPORT).exists()
