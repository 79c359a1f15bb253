"""
Tests for store row models, extraction acceptance policy and request schemas.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from dealroom.models import (
    DealCreate,
    DealDraft,
    DealUpdate,
    Deal,
    ExtractedFacts,
    MessageCreate,
)
from dealroom.models.extraction import coerce_money, coerce_text
from dealroom.models.requests import StageUpdate


class TestDealModel:
    def test_camel_case_serialization(self, sample_deal):
        data = sample_deal.model_dump(mode='json', by_alias=True)
        assert data['targetCompany'] is None
        assert data['stageId'] == 1
        assert 'target_company' not in data

    def test_accepts_camel_case_input(self):
        deal = Deal.model_validate({'id': 1, 'name': 'X', 'targetCompany': 'Acme', 'aiSummary': 's'})
        assert deal.target_company == 'Acme'
        assert deal.ai_summary == 's'

    def test_ev_ebitda_multiple(self):
        deal = Deal(id=1, name='X', valuation=Decimal('50'), ebitda=Decimal('10'))
        assert deal.ev_ebitda_multiple == Decimal('5')

    def test_ev_ebitda_multiple_requires_positive_ebitda(self):
        assert Deal(id=1, name='X', valuation=Decimal('50'), ebitda=Decimal('0')).ev_ebitda_multiple is None
        assert Deal(id=1, name='X', valuation=Decimal('50')).ev_ebitda_multiple is None


class TestCoercion:
    @pytest.mark.parametrize('value', [50, 12.5, 0])
    def test_money_accepts_non_negative_numbers(self, value):
        assert coerce_money(value) == Decimal(str(value))

    @pytest.mark.parametrize('value', ['50', True, False, -1, float('nan'), float('inf'), None, [50]])
    def test_money_rejects_everything_else(self, value):
        assert coerce_money(value) is None

    def test_text_strips(self):
        assert coerce_text('  Acme  ') == 'Acme'

    @pytest.mark.parametrize('value', ['', '   ', 42, None, {'name': 'Acme'}])
    def test_text_rejects_non_strings_and_blank(self, value):
        assert coerce_text(value) is None


class TestExtractedFacts:
    def test_from_payload_maps_camel_case_keys(self):
        facts = ExtractedFacts.from_payload(
            {'valuation': 50, 'revenue': 120, 'ebitda': None, 'targetCompany': 'Acme', 'geography': ''}
        )
        assert facts.valuation == Decimal('50')
        assert facts.revenue == Decimal('120')
        assert facts.ebitda is None
        assert facts.target_company == 'Acme'
        assert facts.geography is None

    def test_string_numbers_are_not_reported(self):
        facts = ExtractedFacts.from_payload({'valuation': '50', 'revenue': '$120M'})
        assert facts.is_empty

    def test_is_empty(self):
        assert ExtractedFacts().is_empty
        assert not ExtractedFacts(geography='EMEA').is_empty


class TestDealDraft:
    def test_name_falls_back_to_file_stem(self):
        draft = DealDraft.from_payload({'name': None, 'revenue': 30}, fallback_name='acme-teaser')
        assert draft.name == 'acme-teaser'
        assert draft.revenue == Decimal('30')

    def test_name_from_payload(self):
        draft = DealDraft.from_payload(
            {'name': 'Acme Corp Acquisition', 'description': 'Buyout', 'targetCompany': 'Acme'},
            fallback_name='file',
        )
        assert draft.name == 'Acme Corp Acquisition'
        assert draft.description == 'Buyout'
        assert draft.target_company == 'Acme'


class TestRequests:
    def test_deal_create_requires_name(self):
        with pytest.raises(PydanticValidationError):
            DealCreate.model_validate({'name': ''})

    def test_deal_create_rejects_negative_money(self):
        with pytest.raises(PydanticValidationError):
            DealCreate.model_validate({'name': 'X', 'valuation': -5})

    def test_deal_update_tracks_set_fields(self):
        update = DealUpdate.model_validate({'stageId': 2})
        assert update.model_dump(exclude_unset=True) == {'stage_id': 2}

    def test_message_content_stripped(self):
        assert MessageCreate.model_validate({'content': '  Hello '}).content == 'Hello'

    def test_message_content_blank_rejected(self):
        with pytest.raises(PydanticValidationError):
            MessageCreate.model_validate({'content': '   '})

    def test_message_request_id_alias(self):
        assert MessageCreate.model_validate({'content': 'Hi', 'requestId': 'r-1'}).request_id == 'r-1'

    def test_deal_update_rejects_null_name(self):
        with pytest.raises(PydanticValidationError):
            DealUpdate.model_validate({'name': None})

    def test_deal_status_is_stored_as_plain_value(self):
        assert DealCreate.model_validate({'name': 'X'}).model_dump()['status'] == 'active'
        update = DealUpdate.model_validate({'status': 'closed'})
        assert update.model_dump(exclude_unset=True) == {'status': 'closed'}
        assert type(update.status) is str

    def test_deal_status_outside_lifecycle_rejected(self):
        with pytest.raises(PydanticValidationError):
            DealCreate.model_validate({'name': 'X', 'status': 'archived'})

    def test_stage_update_rejects_null_sort_order(self):
        with pytest.raises(PydanticValidationError):
            StageUpdate.model_validate({'sortOrder': None})
        assert StageUpdate.model_validate({'description': None}).model_dump(exclude_unset=True) == {
            'description': None
        }
