"""Unit tests for node payload parsing."""

from tgi.services.rpc_client import BlockAdded, BlockDagInfo, NodeInfo, RpcBlock, VirtualChainChanged


class TestRpcBlock:
    """Test block payload parsing."""

    def test_nested_payload(self):
        block = RpcBlock.from_payload({
            "header": {
                "hash": "bb",
                "parentsByLevel": [["aa", "a2"], ["zz"]],
                "timestamp": 1700000000000,
                "daaScore": 42,
                "blueScore": 40,
            },
            "verboseData": {
                "hash": "bb",
                "selectedParentHash": "aa",
                "mergeSetBluesHashes": ["aa"],
                "mergeSetRedsHashes": ["a2"],
                "isHeaderOnly": False,
            },
        })

        assert block.hash == "bb"
        assert block.parent_hashes == ["aa", "a2"]
        assert block.daa_score == 42
        assert block.blue_score == 40
        assert block.selected_parent_hash == "aa"
        assert block.merge_set_reds_hashes == ["a2"]
        assert block.is_header_only is False

    def test_parents_given_as_level_objects(self):
        block = RpcBlock.from_payload({
            "header": {"hash": "bb", "parents": [{"parentHashes": ["aa"]}]},
            "verboseData": {"hash": "bb"},
        })
        assert block.parent_hashes == ["aa"]

    def test_header_only_without_verbose_data(self):
        block = RpcBlock.from_payload({"header": {"hash": "bb", "parentsByLevel": [["aa"]]}})

        assert block.is_header_only is True
        assert block.selected_parent_hash is None
        assert block.effective_selected_parent == "aa"

    def test_flat_payload(self):
        block = RpcBlock.from_payload({
            "hash": "cc",
            "parentHashes": ["bb"],
            "blueScore": 3,
            "selectedParentHash": "bb",
        })
        assert block.parent_hashes == ["bb"]
        assert block.blue_score == 3

    def test_genesis_has_no_selected_parent(self):
        assert RpcBlock(hash="g").effective_selected_parent is None


class TestResponses:
    """Test response and notification parsing."""

    def test_node_info(self):
        info = NodeInfo.model_validate(
            {"serverVersion": "0.14.2", "isSynced": True, "p2pId": "x", "mempoolSize": 3}
        )
        assert info.server_version == "0.14.2"
        assert info.is_synced is True

    def test_block_dag_info(self):
        info = BlockDagInfo.model_validate({
            "network": "tondi-mainnet",
            "pruningPointHash": "pp",
            "tipHashes": ["t1", "t2"],
            "virtualDaaScore": 99,
        })
        assert info.pruning_point_hash == "pp"
        assert info.tip_hashes == ["t1", "t2"]

    def test_virtual_chain_changed(self):
        notification = VirtualChainChanged.model_validate({
            "removedChainBlockHashes": ["c"],
            "addedChainBlockHashes": ["d", "e"],
        })
        assert notification.removed_chain_block_hashes == ["c"]
        assert notification.added_chain_block_hashes == ["d", "e"]

    def test_block_added(self):
        notification = BlockAdded.from_payload(
            {"block": {"header": {"hash": "bb", "parentsByLevel": [["aa"]]}}}
        )
        assert notification.block.hash == "bb"
