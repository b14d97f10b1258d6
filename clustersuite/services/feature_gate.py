from typing import Union
import logging

import pytest

from clustersuite.models.cluster import ClusterTestContext
from clustersuite.models.features import FeatureCode

logger = logging.getLogger(__name__)


def is_supported(context: ClusterTestContext, code: Union[FeatureCode, str]) -> bool:
    """Whether the target of this run supports a feature"""
    return context.supports_feature(code)


def skip_if_unsupported(context: ClusterTestContext, code: Union[FeatureCode, str]):
    """Skip the calling test when the feature is unsupported or disabled"""
    if context.not_supports_feature(code):
        name = code.value if isinstance(code, FeatureCode) else code
        logger.debug(f"Feature {name} unsupported on {context.version}")
        pytest.skip(f"Skipping test because feature {name} unsupported or disabled")
