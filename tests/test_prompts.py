"""Tests for prompt loading and logging setup."""

import logging

import pytest

from dxdebate.utils.logging import get_logger, setup_logging
from dxdebate.utils.prompt_loader import (
    format_prompt,
    get_available_roles,
    load_prompt,
    render_prompt,
)


class TestPrompts:
    """Tests for prompt templates."""

    def test_all_roles_have_prompts(self):
        assert get_available_roles() == [
            "challenger", "checklist", "hypothesis", "stewardship", "test_chooser",
        ]

    def test_load_role_prompt(self):
        assert load_prompt("hypothesis").strip()

    def test_missing_prompt(self):
        with pytest.raises(FileNotFoundError):
            load_prompt("radiologist")

    def test_unknown_placeholders_survive(self):
        """Test that JSON braces in templates are left alone."""
        template = 'Case: {case_text}\n{"age": 0}\n{other}'
        result = format_prompt(template, case_text="chest pain")
        assert result == 'Case: chest pain\n{"age": 0}\n{other}'

    def test_substituted_values_not_expanded(self):
        """Test that braces inside a patient's text are not treated as placeholders."""
        template = "Case: {case_text}\nQuestions: {questions}"
        result = format_prompt(template, case_text="typed {questions} by mistake", questions="none")
        assert result == "Case: typed {questions} by mistake\nQuestions: none"

    def test_render_intake(self):
        rendered = render_prompt("intake", case_text="45 year old with cough")
        assert "45 year old with cough" in rendered
        assert "{case_text}" not in rendered
        assert '"patient_id"' in rendered


class TestLogging:
    """Tests for logging setup."""

    def test_setup_logging(self, tmp_path):
        log_file = tmp_path / "logs" / "dxdebate.log"
        logger = setup_logging("DEBUG", log_file=str(log_file))
        try:
            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == 2
            assert logging.getLogger("httpx").level == logging.WARNING
            get_logger("workflow").debug("written to file")
            for handler in logger.handlers:
                handler.flush()
            assert "written to file" in log_file.read_text()
        finally:
            for handler in logger.handlers:
                handler.close()
            logger.handlers = []
            logger.setLevel(logging.NOTSET)
