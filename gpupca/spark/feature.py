"""PCA estimator and model for PySpark ML pipelines."""

from __future__ import annotations

import functools
import logging
import os

import numpy as np
from pyspark import keyword_only
from pyspark.ml import Estimator, Model
from pyspark.ml.linalg import DenseMatrix, DenseVector, VectorUDT
from pyspark.ml.param import Param, Params, TypeConverters
from pyspark.ml.param.shared import HasInputCol, HasOutputCol
from pyspark.ml.util import (
    DefaultParamsReadable,
    DefaultParamsReader,
    DefaultParamsWritable,
    DefaultParamsWriter,
    MLReadable,
    MLReader,
    MLWritable,
    MLWriter,
)
from pyspark.sql import functions as F

from gpupca.core.backend import resolve_device
from gpupca.core.config import DEFAULT_GPU_ID, PCAConfig
from gpupca.distributed._fit import solve_moments
from gpupca.distributed._gpu import device_label

from ._moments import distributed_moments
from ._utils import validate_output_column, validate_spark_input, validate_vector_column, vector_column_size

log = logging.getLogger(__name__)


class _PCAParams(HasInputCol, HasOutputCol):
    """Params shared by :class:`PCA` and :class:`PCAModel`."""

    k = Param(
        Params._dummy(),
        "k",
        "the number of principal components (> 0)",
        typeConverter=TypeConverters.toInt,
    )
    useGemm = Param(
        Params._dummy(),
        "useGemm",
        "whether to accumulate the Gram matrix with one matrix multiply per partition "
        "instead of per-row symmetric packed updates",
        typeConverter=TypeConverters.toBoolean,
    )
    useCuSolverSVD = Param(
        Params._dummy(),
        "useCuSolverSVD",
        "whether to extract components with the symmetric eigensolver (cuSOLVER on GPU) "
        "instead of the host SVD",
        typeConverter=TypeConverters.toBoolean,
    )
    gpuId = Param(
        Params._dummy(),
        "gpuId",
        "the GPU ordinal to use, -1 to use the GPU assigned to each task",
        typeConverter=TypeConverters.toInt,
    )
    meanCentering = Param(
        Params._dummy(),
        "meanCentering",
        "whether to subtract column means when forming the covariance",
        typeConverter=TypeConverters.toBoolean,
    )

    def __init__(self, *args):
        super().__init__(*args)
        self._setDefault(useGemm=True, useCuSolverSVD=True, gpuId=DEFAULT_GPU_ID, meanCentering=True)

    def getK(self):
        """Gets the value of k or its default value."""
        return self.getOrDefault(self.k)

    def getUseGemm(self):
        """Gets the value of useGemm or its default value."""
        return self.getOrDefault(self.useGemm)

    def getUseCuSolverSVD(self):
        """Gets the value of useCuSolverSVD or its default value."""
        return self.getOrDefault(self.useCuSolverSVD)

    def getGpuId(self):
        """Gets the value of gpuId or its default value."""
        return self.getOrDefault(self.gpuId)

    def getMeanCentering(self):
        """Gets the value of meanCentering or its default value."""
        return self.getOrDefault(self.meanCentering)

    def _pca_config(self):
        if not self.isDefined(self.k):
            raise ValueError("Param k must be set before fitting.")
        return PCAConfig(
            k=self.getK(),
            use_gemm=self.getUseGemm(),
            use_cusolver_svd=self.getUseCuSolverSVD(),
            gpu_id=self.getGpuId(),
            mean_centering=self.getMeanCentering(),
        ).validate()


class PCA(Estimator, _PCAParams, DefaultParamsReadable, DefaultParamsWritable):
    """PCA trains a model to project vectors to a lower dimensional space of the top k principal components.

    The covariance moments are accumulated per partition on the executors,
    on the task's GPU when one is usable, and the top-k components are
    extracted on the driver.

    Examples
    --------
    >>> from pyspark.ml.linalg import Vectors
    >>> data = [(Vectors.sparse(5, [(1, 1.0), (3, 7.0)]),),
    ...     (Vectors.dense([2.0, 0.0, 3.0, 4.0, 5.0]),),
    ...     (Vectors.dense([4.0, 0.0, 0.0, 6.0, 7.0]),)]
    >>> df = spark.createDataFrame(data, ["features"])
    >>> pca = PCA(k=2, inputCol="features", outputCol="pca_features")
    >>> model = pca.fit(df)
    >>> model.explainedVariance.size
    2
    """

    @keyword_only
    def __init__(
        self,
        *,
        k=None,
        inputCol=None,
        outputCol=None,
        useGemm=True,
        useCuSolverSVD=True,
        gpuId=DEFAULT_GPU_ID,
        meanCentering=True,
    ):
        super().__init__()
        kwargs = self._input_kwargs
        self.setParams(**kwargs)

    @keyword_only
    def setParams(
        self,
        *,
        k=None,
        inputCol=None,
        outputCol=None,
        useGemm=True,
        useCuSolverSVD=True,
        gpuId=DEFAULT_GPU_ID,
        meanCentering=True,
    ):
        """Sets params for this PCA."""
        kwargs = self._input_kwargs
        return self._set(**kwargs)

    def setK(self, value):
        """Sets the value of :py:attr:`k`."""
        return self._set(k=value)

    def setInputCol(self, value):
        """Sets the value of :py:attr:`inputCol`."""
        return self._set(inputCol=value)

    def setOutputCol(self, value):
        """Sets the value of :py:attr:`outputCol`."""
        return self._set(outputCol=value)

    def setUseGemm(self, value):
        """Sets the value of :py:attr:`useGemm`."""
        return self._set(useGemm=value)

    def setUseCuSolverSVD(self, value):
        """Sets the value of :py:attr:`useCuSolverSVD`."""
        return self._set(useCuSolverSVD=value)

    def setGpuId(self, value):
        """Sets the value of :py:attr:`gpuId`."""
        return self._set(gpuId=value)

    def setMeanCentering(self, value):
        """Sets the value of :py:attr:`meanCentering`."""
        return self._set(meanCentering=value)

    def _fit(self, dataset):
        config = self._pca_config()
        input_col = self.getInputCol()
        validate_spark_input(dataset, [input_col])
        validate_vector_column(dataset, input_col)
        validate_output_column(dataset, self.getOutputCol())
        logging.getLogger("py4j").setLevel(logging.ERROR)

        pc, explained_variance, _mean, n_obs, device = fit_components(dataset, input_col, config)
        log.info(
            "PCA %s: fitted k=%d on %d rows (gram=%s, solver=%s, device=%s)",
            self.uid,
            config.k,
            n_obs,
            config.gram_method.value,
            config.solver.value,
            device_label(device),
        )

        n_features = pc.shape[0]
        model = PCAModel(
            uid=self.uid,
            pc=DenseMatrix(n_features, config.k, pc.ravel(order="F")),
            explainedVariance=DenseVector(explained_variance),
        )
        return self._copyValues(model)


class PCAModel(Model, _PCAParams, MLReadable, MLWritable):
    """Model fitted by :class:`PCA`. Transforms vectors to a lower dimensional space.

    Parameters
    ----------
    uid : str, optional
        Identifier; fitted models share the uid of their estimator.
    pc : pyspark.ml.linalg.DenseMatrix
        Principal components, one column per component.
    explainedVariance : pyspark.ml.linalg.DenseVector
        Proportion of variance explained by each component.
    """

    def __init__(self, uid=None, pc=None, explainedVariance=None):
        super().__init__()
        if uid is not None:
            self._resetUid(uid)
        if pc is not None and explainedVariance is not None and pc.numCols != len(explainedVariance):
            raise ValueError(
                f"pc has {pc.numCols} columns but explainedVariance has {len(explainedVariance)} entries."
            )
        self._pc = pc
        self._explainedVariance = explainedVariance
        if pc is not None:
            self._setDefault(k=pc.numCols)

    @property
    def pc(self):
        """Principal components matrix. Each column is one principal component."""
        return self._pc

    @property
    def explainedVariance(self):
        """A vector of proportions of variance explained by each principal component."""
        return self._explainedVariance

    def setInputCol(self, value):
        """Sets the value of :py:attr:`inputCol`."""
        return self._set(inputCol=value)

    def setOutputCol(self, value):
        """Sets the value of :py:attr:`outputCol`."""
        return self._set(outputCol=value)

    def _transform(self, dataset):
        input_col, output_col = self.getInputCol(), self.getOutputCol()
        validate_spark_input(dataset, [input_col])
        validate_vector_column(dataset, input_col)
        validate_output_column(dataset, output_col)

        project = F.udf(functools.partial(_project_vector, pc=self._pc.toArray()), VectorUDT())
        return dataset.withColumn(output_col, project(F.col(input_col)))

    def write(self):
        """Returns an MLWriter instance for this ML instance."""
        return PCAModelWriter(self)

    @classmethod
    def read(cls):
        """Returns an MLReader instance for this class."""
        return PCAModelReader(cls)


class PCAModelWriter(MLWriter):
    """Saves params as metadata and the fitted arrays as one Parquet row."""

    def __init__(self, instance):
        super().__init__()
        self.instance = instance

    def saveImpl(self, path):
        DefaultParamsWriter.saveMetadata(self.instance, path, self.sc)
        data = self.sparkSession.createDataFrame(
            [(self.instance.pc, self.instance.explainedVariance)],
            ["pc", "explainedVariance"],
        )
        data.repartition(1).write.parquet(os.path.join(path, "data"))


class PCAModelReader(MLReader):
    """Loads a :class:`PCAModel` saved by :class:`PCAModelWriter`."""

    def __init__(self, cls):
        super().__init__()
        self.cls = cls

    def load(self, path):
        metadata = DefaultParamsReader.loadMetadata(path, self.sc)
        row = self.sparkSession.read.parquet(os.path.join(path, "data")).select("pc", "explainedVariance").head()
        model = self.cls(uid=metadata["uid"], pc=row["pc"], explainedVariance=row["explainedVariance"])
        DefaultParamsReader.getAndSetParams(model, metadata)
        return model


def fit_components(dataset, input_col, config):
    """Fit the top-k components of a Spark vector column.

    Parameters
    ----------
    dataset : pyspark.sql.DataFrame
        Input DataFrame.
    input_col : str
        Column of ``pyspark.ml.linalg`` vectors.
    config : PCAConfig
        Fit settings.

    Returns
    -------
    pc : ndarray of shape (d, k)
    explained_variance : ndarray of shape (k,)
    mean : ndarray of shape (d,)
    n_obs : int
    device : int or None
        Device the driver-side solver ran on.
    """
    n_features = vector_column_size(dataset, input_col)
    config.validate(n_features)
    moments = distributed_moments(dataset, input_col, n_features, config.use_gemm, config.gpu_id)
    device = resolve_device(config.gpu_id) if config.use_cusolver_svd else None
    pc, explained_variance, mean, n_obs = solve_moments(moments, config, device=device)
    return pc, explained_variance, mean, n_obs, device


def _project_vector(vector, pc):
    """Project one ``pyspark.ml.linalg`` vector onto the columns of ``pc``."""
    if vector is None:
        return None
    if vector.size != pc.shape[0]:
        raise ValueError(f"Vector size {vector.size} does not match the model dimensionality {pc.shape[0]}.")
    if hasattr(vector, "indices"):
        return DenseVector(np.asarray(vector.values) @ pc[np.asarray(vector.indices)])
    return DenseVector(vector.toArray() @ pc)
