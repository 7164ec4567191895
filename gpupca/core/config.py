"""Configuration for PCA fitting."""

from dataclasses import dataclass
from enum import Enum
from numbers import Integral
from typing import Any

DEFAULT_GPU_ID = -1
MAX_FEATURES = 65535


class GramMethod(str, Enum):
    """How partition Gram matrices are accumulated."""

    SPR = "spr"
    GEMM = "gemm"


class SVDSolver(str, Enum):
    """How the top-k directions are extracted from the covariance."""

    SVD = "svd"
    CUSOLVER = "cusolver"


@dataclass(frozen=True)
class PCAConfig:
    """PCA fit config."""

    k: int
    use_gemm: bool = True
    use_cusolver_svd: bool = True
    gpu_id: int = DEFAULT_GPU_ID
    mean_centering: bool = True

    @property
    def gram_method(self) -> GramMethod:
        return GramMethod.GEMM if self.use_gemm else GramMethod.SPR

    @property
    def solver(self) -> SVDSolver:
        return SVDSolver.CUSOLVER if self.use_cusolver_svd else SVDSolver.SVD

    def validate(self, n_features: int | None = None) -> "PCAConfig":
        """Check the settings, and ``k`` against the data dimensionality when known.

        Parameters
        ----------
        n_features : int, optional
            Dimensionality of the input vectors.

        Returns
        -------
        PCAConfig
            ``self``, so calls can be chained.

        Raises
        ------
        ValueError
            If ``k`` is not positive or exceeds ``n_features``, if
            ``n_features`` exceeds the packed Gram storage limit, or if
            ``gpu_id`` is below -1.
        """
        if isinstance(self.k, bool) or not isinstance(self.k, Integral) or self.k <= 0:
            raise ValueError(f"k must be a positive integer, got {self.k!r}.")
        if not isinstance(self.gpu_id, Integral) or self.gpu_id < -1:
            raise ValueError(f"gpu_id must be -1 or a non-negative device ordinal, got {self.gpu_id!r}.")
        if n_features is not None:
            if n_features > MAX_FEATURES:
                raise ValueError(f"PCA supports at most {MAX_FEATURES} features, got {n_features}.")
            if self.k > n_features:
                raise ValueError(
                    f"k must not exceed the number of features: k={self.k}, number of features={n_features}."
                )
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        out = {k: v.value if isinstance(v, Enum) else v for k, v in self.__dict__.items()}
        out["gram_method"] = self.gram_method.value
        out["solver"] = self.solver.value
        return out
