"""
Union Cohort: Synthetic Cohort Tables of Union Formation and Dissolution

This package converts observed prevalence of marriage / stable union by
single year of age into age-specific transition probabilities of a
two-state synthetic cohort (not in union <-> in union).
"""

__version__ = "1.0.0"
__author__ = "Union Cohort Research Team"
