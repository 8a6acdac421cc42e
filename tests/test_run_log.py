#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DraftWeaver v0.1.0

Tests for the combined run log.

Author: DraftWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging

import pytest

from draftweaver.errors import ValidationError
from draftweaver.utils.run_log import RunLog


class TestRunLog:
    """Test message collection and persistence."""

    def test_child_loggers_collected(self, temp_output_dir):
        path = temp_output_dir / 'draftweaver.log'

        with RunLog(console=False) as run_log:
            run_log.set_log_file(path)
            logging.getLogger('draftweaver.preprocessing.depth').info("depth 150x")
            run_log.logger.info("done")

        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert lines[0].endswith("draftweaver.preprocessing.depth - INFO - depth 150x")
        assert lines[1].endswith("done")

    def test_persisted_on_fatal_error(self, temp_output_dir):
        path = temp_output_dir / 'draftweaver.log'

        with pytest.raises(ValidationError):
            with RunLog(console=False) as run_log:
                run_log.set_log_file(path)
                run_log.logger.info("started")
                raise ValidationError("bad input")

        text = path.read_text()
        assert "started" in text
        assert "Aborted: bad input" in text

    def test_level_filters_debug(self, temp_output_dir):
        with RunLog(level='INFO', console=False) as run_log:
            run_log.logger.debug("hidden")
            run_log.logger.warning("shown")

        assert len(run_log.messages) == 1

    def test_handlers_detached(self):
        logger = logging.getLogger('draftweaver')
        before = list(logger.handlers)

        with RunLog(console=True):
            assert len(logger.handlers) == len(before) + 2

        assert logger.handlers == before

    def test_no_file_without_path(self, temp_output_dir):
        with RunLog(console=False) as run_log:
            run_log.logger.info("kept in memory")

        assert run_log.messages
        assert list(temp_output_dir.iterdir()) == []

# DraftWeaver v0.1.0
# Any usage is subject to this software's license.
