"""Estimator front-end for the ADMM regression models."""

from .lasso import AdmmLasso
from .elastic_net import AdmmElasticNet
from .lad import AdmmLAD
from .basis_pursuit import AdmmBasisPursuit

__all__ = [
    "AdmmLasso",
    "AdmmElasticNet",
    "AdmmLAD",
    "AdmmBasisPursuit",
]
