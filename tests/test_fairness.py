"""Tests for the fairness matrix."""

from types import SimpleNamespace

import numpy as np
import pytest

from fairseat.core.fairness import (
    FairnessMatrix,
    compute_matrix,
    party_size_bucket,
    score_matrix,
)
from fairseat.core.snapshot import ServerInfo
from fairseat.errors import FairnessMatrixError


def entry(server_id, party_size):
    return SimpleNamespace(server_id=server_id, party_size=party_size)


SERVERS = [
    ServerInfo(server_id=1, name="Ana", section=1),
    ServerInfo(server_id=2, name="Ben", section=2),
]


@pytest.mark.parametrize(
    "size, bucket",
    [(1, 0), (2, 1), (3, 2), (4, 3), (5, 4), (6, 5), (12, 5), (20, 5)],
)
def test_party_size_bucket(size, bucket):
    """Sizes one to five get their own bucket and six or more share the last."""
    assert party_size_bucket(size) == bucket


class TestComputeMatrix:
    """Tests for folding ledger entries into counts."""

    def test_counts_by_bucket(self):
        """Entries are counted per server and size bucket."""
        entries = [entry(1, 4), entry(1, 4), entry(2, 2), entry(2, 9)]

        result = compute_matrix(SERVERS, entries)

        assert result.matrix.tolist() == [[0, 0, 0, 2, 0, 0], [0, 1, 0, 0, 0, 1]]
        assert result.server_index == {1: 0, 2: 1}
        assert result.totals() == [2, 2]
        assert result.fairness_score == 100

    def test_server_without_entries_has_zero_row(self):
        """A server with no history has an all-zero row."""
        result = compute_matrix(SERVERS, [entry(1, 3)])

        assert result.matrix[1].tolist() == [0] * 6
        assert result.total(2) == 0

    def test_unknown_server_and_bad_size_ignored(self):
        """Entries for unknown servers or without a valid size are skipped."""
        result = compute_matrix(SERVERS, [entry(99, 4), entry(1, None), entry(1, 0)])

        assert result.matrix.sum() == 0

    def test_no_servers_gives_empty_matrix(self):
        """No servers gives an empty, perfectly fair matrix."""
        result = compute_matrix([], [entry(1, 4)])

        assert result.is_empty
        assert result.matrix.shape == (0, 6)
        assert result.fairness_score == 100

    def test_duplicate_servers_collapse(self):
        """A server listed twice gets one row."""
        result = compute_matrix(SERVERS + [SERVERS[0]], [entry(1, 2)])

        assert result.matrix.shape == (2, 6)
        assert result.count(1, 2) == 1

    def test_idempotent(self):
        """Folding the same entries twice gives the same matrix."""
        entries = [entry(1, 4), entry(2, 6), entry(1, 1)]

        first = compute_matrix(SERVERS, entries)
        second = compute_matrix(SERVERS, entries)

        assert np.array_equal(first.matrix, second.matrix)
        assert first.fairness_score == second.fairness_score

    def test_adding_an_entry_increments_one_cell(self):
        """One more entry changes exactly one cell by one."""
        entries = [entry(1, 4), entry(2, 2)]
        before = compute_matrix(SERVERS, entries)
        after = compute_matrix(SERVERS, entries + [entry(2, 5)])

        diff = after.matrix - before.matrix
        assert diff.sum() == 1
        assert diff[1, 4] == 1


class TestFairnessScore:
    """Tests for the variance-based score."""

    def test_balanced_is_perfect(self):
        """Equal totals score 100 whatever the bucket mix."""
        assert score_matrix(np.array([[1, 1, 0, 0, 0, 0], [0, 0, 2, 0, 0, 0]])) == 100

    def test_variance_penalty(self):
        """Each unit of variance costs ten points."""
        # Totals 0 and 2: variance 1.0
        assert score_matrix(np.array([[0] * 6, [2, 0, 0, 0, 0, 0]])) == 90

    def test_rounds_half_up(self):
        """A penalty ending in .5 rounds up."""
        # Totals 0, 0, 1, 1: variance 0.25, penalty 2.5 rounds to 3
        matrix = np.array([[0] * 6, [0] * 6, [1, 0, 0, 0, 0, 0], [1, 0, 0, 0, 0, 0]])
        assert score_matrix(matrix) == 97

    def test_floored_at_zero(self):
        """The score never goes negative."""
        assert score_matrix(np.array([[0] * 6, [0, 0, 0, 0, 0, 20]])) == 0

    def test_empty_is_perfect(self):
        """An empty matrix scores 100."""
        assert score_matrix(np.zeros((0, 6), dtype=np.int64)) == 100


class TestFairnessMatrix:
    """Tests for the matrix value object."""

    def test_wrong_shape_rejected(self):
        """A matrix without six buckets is refused."""
        with pytest.raises(FairnessMatrixError):
            FairnessMatrix(matrix=np.zeros((2, 5), dtype=np.int64))

    def test_from_rows_length_mismatch(self):
        """Rows must match the server list."""
        with pytest.raises(FairnessMatrixError):
            FairnessMatrix.from_rows(SERVERS, [[0] * 6])

    def test_missing_server_row_is_none(self):
        """Unknown servers have no row and count zero."""
        matrix = FairnessMatrix.from_rows(SERVERS, [[0] * 6, [0] * 6])

        assert matrix.row(3) is None
        assert matrix.count(3, 4) == 0

    def test_to_dict(self):
        """Serialisation carries the counts and the derived score."""
        matrix = FairnessMatrix.from_rows(SERVERS, [[0, 0, 0, 1, 0, 0], [0] * 6])

        data = matrix.to_dict()

        assert data["matrix"] == [[0, 0, 0, 1, 0, 0], [0] * 6]
        assert data["server_index"] == {"1": 0, "2": 1}
        assert data["buckets"] == ["1", "2", "3", "4", "5", "6+"]
        assert data["totals"] == [1, 0]
        assert data["fairness_score"] == 97
        assert data["servers"][0] == {"id": 1, "name": "Ana", "section": 1}
