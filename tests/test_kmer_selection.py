#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DraftWeaver v0.1.0

Tests for assembler k-mer selection.

Author: DraftWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import pytest

from draftweaver.errors import ValidationError
from draftweaver.preprocessing import auto_kmer_list, kmer_step, parse_kmer_list, select_kmers


class TestAutoKmerList:
    """Test automatic k-mer derivation."""

    def test_150bp_reads(self):
        assert auto_kmer_list(150).kmers == (31, 51, 71, 91, 111)

    def test_250bp_reads_capped_at_max(self):
        plan = auto_kmer_list(250)
        assert plan.max_k == 127
        assert plan.kmers == (31, 55, 79, 103, 127)

    def test_short_reads_lower_the_floor(self):
        """Test that reads under 75 bp start at k=21."""
        plan = auto_kmer_list(50)
        assert plan.min_k == 21
        assert plan.kmers[0] == 21
        assert max(plan.kmers) <= 37

    def test_all_kmers_odd_and_ascending(self):
        for avg_len in (60, 100, 125, 150, 251, 300):
            kmers = auto_kmer_list(avg_len).kmers
            assert list(kmers) == sorted(set(kmers))
            assert all(k % 2 == 1 for k in kmers)

    def test_reads_too_short(self):
        with pytest.raises(ValidationError, match="too short"):
            auto_kmer_list(20)

    def test_step_minimum(self):
        assert kmer_step(31, 40) == 6
        assert kmer_step(31, 111) == 20


class TestParseKmerList:
    """Test user k-mer lists."""

    def test_any_separator(self):
        plan = parse_kmer_list("77, 31;55", avg_len=150)
        assert plan.kmers == (31, 55, 77)
        assert plan.source == 'user'

    def test_duplicates_removed(self):
        assert parse_kmer_list("55,55,31", avg_len=150).kmers == (31, 55)

    def test_above_max(self):
        with pytest.raises(ValidationError, match="larger than the maximum"):
            parse_kmer_list("31,131", avg_len=300)

    def test_below_min(self):
        with pytest.raises(ValidationError, match="smaller than the minimum"):
            parse_kmer_list("21,55", avg_len=150)

    def test_not_shorter_than_reads(self):
        with pytest.raises(ValidationError, match="read length"):
            parse_kmer_list("31,101", avg_len=101)

    def test_empty_list(self):
        with pytest.raises(ValidationError):
            parse_kmer_list(",,", avg_len=150)


class TestSelectKmers:
    """Test the user/auto switch."""

    def test_user_list_wins(self):
        assert select_kmers("41,61", avg_len=150).kmers == (41, 61)

    def test_auto_when_absent(self):
        plan = select_kmers(None, avg_len=150)
        assert plan.source == 'auto'
        assert plan.as_argument() == '31,51,71,91,111'

# DraftWeaver v0.1.0
# Any usage is subject to this software's license.
