"""
pisces_mr: Master regulator identification from single-cell protein
activity matrices.

Analyses:
    1. merge              — priority merge of two activity matrices
    2. scoring            — Stouffer integration, ANOVA, bootstrap t-test
    3. mr_selection       — top-K master regulator selection per cluster
    4. mr_aggregation     — flatten per-cluster / per-cell MRs into a panel
    5. similarity         — cross-matrix sample similarity
    6. regulon_processing — ARACNe network → pruned regulon (viper/R)
"""

__version__ = "0.1.0"
