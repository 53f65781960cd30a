"""
Step 3: attach name, symbol and metadata document to the asset.

The document is embedded as a data URI. An existing metadata account with
the same content counts as done; one with different content is updated.
"""

import base64
import json

from ..checkpoint.model import StepName
from ..core.config import TokenSpec
from ..operations.model import MetadataFields, Operation
from ..relay.submitter import SubmissionResult
from .base import Step, StepContext
from .create_asset import CreateAssetStep


def metadata_uri(token: TokenSpec) -> str:
    encoded = base64.b64encode(json.dumps(token.document()).encode("utf-8")).decode("ascii")
    return f"data:application/json;base64,{encoded}"


def desired_fields(token: TokenSpec) -> MetadataFields:
    return MetadataFields(name=token.name, symbol=token.symbol, uri=metadata_uri(token))


class SetMetadataStep(Step):
    name = StepName.METADATA_SET
    requires = (CreateAssetStep,)

    def observed_on_ledger(self, ctx: StepContext) -> bool:
        asset = ctx.asset_address
        if asset is None:
            return False
        address = ctx.builder.metadata_address(asset)
        info = ctx.ledger.get_account_info(address)
        if info is None:
            return False
        current = ctx.builder.decode_metadata(info.data)
        # Unknown encodings are treated as already set; nothing safe to compare.
        if current is None or current == desired_fields(ctx.config.token):
            ctx.note(self.name, metadata_address=address)
            return True
        return False

    def _apply(self, ctx: StepContext) -> SubmissionResult:
        asset = ctx.asset_address
        address = ctx.builder.metadata_address(asset)
        fields = desired_fields(ctx.config.token)
        authority = ctx.identity.address

        if ctx.ledger.get_account_info(address) is None:
            instructions = ctx.builder.create_metadata(
                payer=ctx.config.relayer_pubkey,
                asset=asset,
                authority=authority,
                fields=fields,
            )
            action = "created"
        else:
            instructions = ctx.builder.update_metadata(asset=asset, authority=authority, fields=fields)
            action = "updated"

        result = ctx.submitter.submit(Operation(instructions, label="set-metadata"), dry_run=ctx.dry_run)
        ctx.note(self.name, metadata_address=address, action=action)
        return result
