"""
Node RPC payload models.

The node speaks camelCase JSON; these models are the only place that
knows its message shapes.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RpcModel(BaseModel):
    """Base for node payloads: camelCase aliases, unknown fields ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class NodeInfo(RpcModel):
    """Response of getInfo."""

    server_version: str
    is_synced: bool = False
    p2p_id: str | None = None


class BlockDagInfo(RpcModel):
    """Response of getBlockDagInfo."""

    network: str = ""
    block_count: int = 0
    tip_hashes: list[str] = Field(default_factory=list)
    virtual_daa_score: int = 0
    pruning_point_hash: str
    sink: str | None = None


class RpcBlock(RpcModel):
    """
    Block as reported by the node, flattened from header + verbose data.

    ``selected_parent_hash`` and the merge sets come from the verbose
    data; header-only blocks lack them.
    """

    hash: str
    parent_hashes: list[str] = Field(default_factory=list)
    timestamp: int = 0
    daa_score: int = 0
    blue_score: int = 0
    selected_parent_hash: str | None = None
    merge_set_blues_hashes: list[str] = Field(default_factory=list)
    merge_set_reds_hashes: list[str] = Field(default_factory=list)
    is_header_only: bool = False

    @property
    def effective_selected_parent(self) -> str | None:
        """Selected parent, falling back to the first direct parent."""
        if self.selected_parent_hash:
            return self.selected_parent_hash
        return self.parent_hashes[0] if self.parent_hashes else None

    @classmethod
    def from_payload(cls, payload: dict) -> "RpcBlock":
        """
        Build from a node block message.

        Accepts both the nested ``{header, verboseData}`` layout and an
        already flat object.
        """
        header = payload.get("header")
        if header is None:
            return cls.model_validate(payload)

        verbose = payload.get("verboseData") or {}
        parents = header.get("parentsByLevel") or header.get("parents") or []
        # Direct parents are level 0
        if parents and isinstance(parents[0], list):
            direct_parents = parents[0]
        elif parents and isinstance(parents[0], dict):
            direct_parents = parents[0].get("parentHashes", [])
        else:
            direct_parents = list(parents)

        return cls(
            hash=verbose.get("hash") or header["hash"],
            parent_hashes=direct_parents,
            timestamp=int(header.get("timestamp", 0)),
            daa_score=int(header.get("daaScore", 0)),
            blue_score=int(header.get("blueScore", 0)),
            selected_parent_hash=verbose.get("selectedParentHash"),
            merge_set_blues_hashes=verbose.get("mergeSetBluesHashes", []),
            merge_set_reds_hashes=verbose.get("mergeSetRedsHashes", []),
            is_header_only=bool(verbose.get("isHeaderOnly", not verbose)),
        )


class VirtualChainChanged(RpcModel):
    """virtualChainChanged notification / getVirtualChainFromBlock response."""

    removed_chain_block_hashes: list[str] = Field(default_factory=list)
    added_chain_block_hashes: list[str] = Field(default_factory=list)


class BlockAdded(RpcModel):
    """blockAdded notification."""

    block: RpcBlock

    @classmethod
    def from_payload(cls, payload: dict) -> "BlockAdded":
        return cls(block=RpcBlock.from_payload(payload["block"]))
