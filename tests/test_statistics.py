"""Tests for contingency tables, the hypergeometric test and p-value correction."""
import pytest
import numpy as np
from scipy import stats

from geneset_ora.enrichment.contingency import ContingencyTable, build_contingency
from geneset_ora.enrichment.correction import adjust_pvalues, resolve_method
from geneset_ora.enrichment.errors import InvalidContingency, InputError
from geneset_ora.enrichment.statistics import fold_enrichment, hypergeometric_test


class TestContingencyTable:
    """Tests for the contingency builder."""

    def test_toy_counts(self, toy_query, toy_universe):
        """T1 against G1..G3 in G1..G10 should give a=2, b=1, c=2, d=5."""
        table = build_contingency(toy_query, toy_universe, {"G1", "G2", "G4", "G5"})
        assert (table.a, table.b, table.c, table.d) == (2, 1, 2, 5)
        assert table.universe_size == 10
        assert table.query_size == 3
        assert table.term_size == 4

    def test_counts_restricted_to_universe(self, toy_universe):
        """Genes outside the universe should not be counted anywhere."""
        table = build_contingency({"G1", "X1"}, toy_universe, {"G1", "X1", "X2"})
        assert (table.a, table.b, table.c, table.d) == (1, 0, 0, 9)

    def test_negative_cell_raises(self):
        """Negative counts are an input error, not clamped."""
        with pytest.raises(InvalidContingency):
            ContingencyTable(a=1, b=-1, c=0, d=0)

    def test_from_counts_inconsistent(self):
        """Overlap larger than the query is inconsistent."""
        with pytest.raises(InvalidContingency):
            ContingencyTable.from_counts(overlap=5, query_size=3, term_size=10, universe_size=20)

    def test_invalid_contingency_is_value_error(self):
        """Input errors should also be catchable as ValueError."""
        assert issubclass(InvalidContingency, InputError)
        assert issubclass(InvalidContingency, ValueError)

    def test_from_counts_roundtrip(self):
        """from_counts should reproduce the marginals."""
        table = ContingencyTable.from_counts(overlap=28, query_size=57, term_size=2641, universe_size=17980)
        assert (table.a, table.b, table.c, table.d) == (28, 29, 2613, 15310)


class TestHypergeometricTest:
    """Tests for the one-sided hypergeometric test."""

    def test_matches_fisher_greater(self):
        """Textbook table should match Fisher's exact 'greater' to 1e-9."""
        table = ContingencyTable(a=28, b=29, c=2613, d=15310)
        _, expected = stats.fisher_exact(table.as_matrix(), alternative="greater")
        assert hypergeometric_test(table) == pytest.approx(expected, abs=1e-9)

    def test_toy_value(self):
        """P(X >= 2) for N=10, K=4, n=3 is (36 + 4) / 120."""
        table = ContingencyTable(a=2, b=1, c=2, d=5)
        assert hypergeometric_test(table) == pytest.approx(1 / 3)

    def test_no_overlap(self):
        """a = 0 should give p = 1."""
        assert hypergeometric_test(ContingencyTable(a=0, b=3, c=2, d=5)) == 1.0

    def test_degenerate_tables(self):
        """No genes of interest or no term genes should give p = 1."""
        assert hypergeometric_test(ContingencyTable(a=0, b=0, c=4, d=6)) == 1.0
        assert hypergeometric_test(ContingencyTable(a=0, b=3, c=0, d=7)) == 1.0

    def test_small_pvalue_accuracy(self):
        """Very small p-values should stay positive and accurate."""
        table = ContingencyTable(a=40, b=10, c=10, d=19940)
        pval = hypergeometric_test(table)
        _, expected = stats.fisher_exact(table.as_matrix(), alternative="greater")
        assert 0 < pval < 1e-50
        assert pval == pytest.approx(expected, rel=1e-6)

    def test_pvalue_in_range(self):
        """P-values should always lie in [0, 1]."""
        rng = np.random.RandomState(0)
        for _ in range(50):
            a, b, c, d = rng.randint(0, 30, size=4)
            pval = hypergeometric_test(ContingencyTable(int(a), int(b), int(c), int(d)))
            assert 0.0 <= pval <= 1.0

    def test_fold_enrichment(self):
        """Fold enrichment is observed over expected overlap."""
        table = ContingencyTable(a=2, b=1, c=2, d=5)
        assert fold_enrichment(table) == pytest.approx(2 / 1.2)
        assert fold_enrichment(ContingencyTable(a=0, b=0, c=4, d=6)) == 0.0


class TestAdjustPvalues:
    """Tests for multiple testing correction."""

    def test_bh_known_values(self):
        """BH adjustment should be returned in input order."""
        adjusted = adjust_pvalues([0.01, 0.04, 0.03, 0.005], method="BH")
        np.testing.assert_allclose(adjusted, [0.02, 0.04, 0.04, 0.02])

    def test_toy_pair(self):
        """BH over {1/3, 1} gives {2/3, 1}."""
        np.testing.assert_allclose(adjust_pvalues([1 / 3, 1.0]), [2 / 3, 1.0])

    def test_monotonic_in_raw_rank(self):
        """Adjusted values sorted by raw p-value should be non-decreasing."""
        rng = np.random.RandomState(7)
        pvals = rng.uniform(0, 1, 200) ** 3
        adjusted = adjust_pvalues(pvals)
        ordered = adjusted[np.argsort(pvals, kind="stable")]
        assert np.all(np.diff(ordered) >= -1e-15)

    @pytest.mark.parametrize("method", ["BH", "bonferroni", "holm", "BY"])
    def test_adjusted_not_below_raw(self, method):
        """Adjusted p-values should never be smaller than raw ones."""
        rng = np.random.RandomState(3)
        pvals = rng.uniform(0, 1, 50)
        adjusted = adjust_pvalues(pvals, method=method)
        assert np.all(adjusted >= pvals)
        assert np.all(adjusted <= 1.0)

    def test_bonferroni(self):
        """Bonferroni multiplies by the number of tests, capped at 1."""
        np.testing.assert_allclose(adjust_pvalues([0.01, 0.3, 0.6], method="bonferroni"),
                                   [0.03, 0.9, 1.0])

    def test_none_method(self):
        """'none' should return the raw values."""
        np.testing.assert_allclose(adjust_pvalues([0.1, 0.2], method="none"), [0.1, 0.2])

    def test_empty_input(self):
        """Empty input gives an empty array."""
        assert adjust_pvalues([]).size == 0

    def test_unknown_method(self):
        """Unknown methods should be rejected."""
        with pytest.raises(ValueError, match="Unknown correction method"):
            adjust_pvalues([0.1], method="magic")

    def test_nan_rejected(self):
        """NaN p-values are invalid input."""
        with pytest.raises(ValueError):
            adjust_pvalues([0.1, np.nan])

    def test_method_names_case_insensitive(self):
        """Method names should resolve regardless of case."""
        assert resolve_method("bh") == "BH"
        assert resolve_method("Bonferroni") == "bonferroni"
