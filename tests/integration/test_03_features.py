"""
Integration tests for feature gating.
"""
import logging

import pytest

from clustersuite.models.features import FeatureCode
from clustersuite.services.feature_gate import is_supported

logger = logging.getLogger(__name__)

pytestmark = pytest.mark.integration


class TestFeatureGating:
    """Test skipping on features the target lacks."""

    @pytest.mark.requires_feature(FeatureCode.TRANSACTIONS)
    def test_01_transaction(self, cluster_context, cluster_collection):
        """Test: A multi-document transaction commits when supported."""
        client = cluster_collection.collection.database.client
        with client.start_session() as session:
            with session.start_transaction():
                cluster_collection.collection.replace_one(
                    {"_id": "txn-probe"}, {"probe": True}, upsert=True, session=session
                )

        assert cluster_collection.collection.find_one({"_id": "txn-probe"})["probe"] is True
        cluster_collection.collection.delete_one({"_id": "txn-probe"})

    def test_02_skip_at_runtime(self, cluster_context, skip_unless_supported):
        """Test: A simulated cluster never reports user management."""
        skip_unless_supported(FeatureCode.USER_MANAGEMENT)
        assert not cluster_context.is_simulated

    def test_03_gate_matches_context(self, cluster_context):
        """Test: The gate and the context agree on every feature."""
        for code in FeatureCode:
            assert is_supported(cluster_context, code) == cluster_context.supports_feature(code)
            assert cluster_context.not_supports_feature(code) != cluster_context.supports_feature(code)
