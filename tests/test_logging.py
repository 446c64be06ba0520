"""Tests for loguru-based pipeline logging."""

from loguru import logger

from m4bify.config import PipelineConfig


class TestSetupLogging:
    def setup_method(self):
        logger.remove()

    def teardown_method(self):
        logger.remove()

    def test_no_file_sink_without_log_dir(self, tmp_path):
        config = PipelineConfig(_env_file=None)
        config.setup_logging()
        logger.info("stderr only")
        assert list(tmp_path.iterdir()) == []

    def test_setup_creates_log_dir(self, tmp_path):
        log_dir = tmp_path / "logs"
        config = PipelineConfig(_env_file=None, log_dir=log_dir)
        config.setup_logging()
        assert log_dir.exists()

    def test_setup_adds_file_sink(self, tmp_path):
        log_dir = tmp_path / "logs"
        config = PipelineConfig(_env_file=None, log_dir=log_dir)
        config.setup_logging()
        logger.bind(stage="test").info("hello from test")
        log_file = log_dir / "m4bify.log"
        assert log_file.exists()
        assert "hello from test" in log_file.read_text()

    def test_stage_context_in_output(self, tmp_path):
        log_dir = tmp_path / "logs"
        config = PipelineConfig(_env_file=None, log_dir=log_dir)
        config.setup_logging()
        logger.bind(stage="concat").info("combining")
        content = (log_dir / "m4bify.log").read_text()
        assert "concat" in content
        assert "combining" in content

    def test_default_stage_empty(self, tmp_path):
        log_dir = tmp_path / "logs"
        config = PipelineConfig(_env_file=None, log_dir=log_dir)
        config.setup_logging()
        logger.info("no stage bound")
        assert "no stage bound" in (log_dir / "m4bify.log").read_text()

    def test_file_sink_records_debug(self, tmp_path):
        log_dir = tmp_path / "logs"
        config = PipelineConfig(_env_file=None, log_dir=log_dir, log_level="WARNING")
        config.setup_logging()
        logger.bind(stage="test").debug("detail line")
        assert "detail line" in (log_dir / "m4bify.log").read_text()

    def test_verbose_lowers_stderr_level(self, capsys):
        config = PipelineConfig(_env_file=None, log_level="WARNING", verbose=True)
        config.setup_logging()
        logger.bind(stage="test").debug("verbose detail")
        assert "verbose detail" in capsys.readouterr().err

    def test_log_level_without_verbose(self, capsys):
        config = PipelineConfig(_env_file=None, log_level="WARNING")
        config.setup_logging()
        logger.bind(stage="test").info("quiet detail")
        assert "quiet detail" not in capsys.readouterr().err
