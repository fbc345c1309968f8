"""Schema tests."""

from parliament.models import PartyStatus, SignatureParty
from parliament.schemas import CompleteSignatureRequest, PartyResponse
from parliament.schemas.schemas import BaseSchema


class TestSchemas:
    def test_party_response_reads_orm_rows(self):
        assert BaseSchema.model_config["from_attributes"] is True

        party = SignatureParty(
            id="p1",
            envelope_id="e1",
            email="alex@oasisintl.com",
            display_name="Alex",
            role="chair",
            signing_order=1,
            status=PartyStatus.PENDING,
            party_token="secret",
            signed_at=None,
        )

        response = PartyResponse.model_validate(party)

        assert response.id == "p1"
        assert "party_token" not in response.model_dump()

    def test_party_token_wins_over_token(self):
        request = CompleteSignatureRequest(token="a", party_token="b")
        assert request.provided_token == "b"
        assert CompleteSignatureRequest(token="a").provided_token == "a"
        assert CompleteSignatureRequest().normalized_wet_mode == "click"
