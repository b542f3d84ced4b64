"""Tests for client bullet normalization."""

from morning_deck.deck.bullets import (
    MAX_CLIENT_BULLETS,
    has_reached_bullet_cap,
    normalize_client_bullets,
    split_client_bullets,
)
from morning_deck.models.client import Client


class TestSplitClientBullets:
    def test_trims_and_drops_blank_lines(self):
        assert split_client_bullets('  one \n\n two\r\n   \nthree') == ['one', 'two', 'three']

    def test_caps_at_limit(self):
        text = '\n'.join(f'line {n}' for n in range(10))
        assert len(split_client_bullets(text)) == MAX_CLIENT_BULLETS == 5

    def test_custom_limit(self):
        assert split_client_bullets('a\nb\nc', limit=2) == ['a', 'b']

    def test_empty(self):
        assert split_client_bullets(None) == []
        assert split_client_bullets('') == []


class TestNormalizeClientBullets:
    def test_joins_kept_lines(self):
        assert normalize_client_bullets(' a \n\nb ') == 'a\nb'

    def test_none_stays_none(self):
        assert normalize_client_bullets(None) is None

    def test_blank_text_collapses_to_none(self):
        assert normalize_client_bullets('  \n \n') is None

    def test_idempotent(self):
        once = normalize_client_bullets('x\n y \n\nz')
        assert normalize_client_bullets(once) == once


class TestBulletCap:
    def test_cap(self):
        assert not has_reached_bullet_cap(4)
        assert has_reached_bullet_cap(5)

    def test_client_bullets_property(self):
        client = Client(id='c1', owner_id='o', name='Acme', notes='one\n\ntwo')
        assert client.bullets == ['one', 'two']
