"""Tests for card, column and API extractors."""

import pytest

from quizpoll_pipeline.extractors import (
    city_code_from_url,
    detect_layout,
    discover_max_page,
    extract_api_page,
    extract_cards,
    extract_columns,
    extract_markup,
)
from quizpoll_pipeline.extractors.api import ApiGame
from quizpoll_pipeline.extractors.markup import page_url
from quizpoll_pipeline.extractors.patterns import external_id_from_url, is_time_token, normalize_time_token
from quizpoll_pipeline.normalizers import normalize_event
from tests.conftest import NOW, card, column

BASE_URL = "https://spb.quizplease.ru/schedule?page=1"

PAGINATOR = """
<ul>
  <li class="game-pagination__list-item"><p>1</p></li>
  <li class="game-pagination__list-item"><p>2</p></li>
  <li class="game-pagination__list-item"><p>4</p></li>
  <li class="game-pagination__list-item"><p>→</p></li>
</ul>
"""


class TestCardExtractor:
    """Tests for the current card layout."""

    def test_parses_card(self):
        items = extract_cards(f"<html><body>{card()}</body></html>", BASE_URL)
        assert len(items) == 1
        item = items[0]
        assert item.external_id == "101"
        assert item.title == "Квиз, плиз! #1212"
        assert item.game_number == "1212"
        assert item.date_text == "4 ноября, пт"
        assert item.time_text == "в 19:30"
        assert item.venue == "Бар Шляпа"
        assert item.address == "Невский, 1"
        assert item.price == "500 ₽"
        assert item.difficulty == "Средняя"
        assert item.url == "https://spb.quizplease.ru/game/101"

    def test_bracket_type(self):
        items = extract_cards(card(title="[music party] 2000-е", number="7"), BASE_URL)
        assert items[0].game_type == "[music party] 2000-е"
        assert items[0].title == "[music party] 2000-е #7"

    def test_english_time_token(self):
        items = extract_cards(card(time="at 18:00"), BASE_URL)
        assert items[0].time_text == "в 18:00"

    def test_skips_card_without_date(self):
        html = card(id="1") + card(id="2", date="") + card(id="3")
        items = extract_cards(html, BASE_URL)
        assert [i.external_id for i in items] == ["1", "3"]

    def test_ignores_cards_without_name_wrapper(self):
        html = card() + '<div class="game-card"><p>Реклама</p></div>'
        assert len(extract_cards(html, BASE_URL)) == 1


class TestColumnExtractor:
    """Tests for the legacy column layout."""

    def test_parses_column(self):
        items = extract_columns(column(), BASE_URL)
        assert len(items) == 1
        item = items[0]
        assert item.external_id == "55"
        assert item.title == "[music party] рашн эдишн #7"
        assert item.game_type == "[music party] рашн эдишн"
        assert item.date_text == "5 ноября"
        assert item.time_text == "в 20:00"
        assert item.venue == "Лофт"
        assert item.address == "Литейный, 2"
        assert item.price == "600 ₽"
        assert item.url == "https://spb.quizplease.ru/game/55"

    def test_skips_column_without_block(self):
        html = column(id="1") + '<div class="schedule-column" id="x"></div>' + column(id="2")
        assert [i.external_id for i in extract_columns(html, BASE_URL)] == ["1", "2"]

    def test_missing_time_kept_as_none(self):
        items = extract_columns(column(time="RU"), BASE_URL)
        assert items[0].time_text is None


class TestMarkupDispatch:
    """Tests for layout detection and pagination discovery."""

    def test_detects_layouts(self):
        assert detect_layout(card()) == "cards"
        assert detect_layout(column()) == "columns"
        assert detect_layout("<html><body>Пусто</body></html>") is None

    def test_extract_markup_uses_matching_layout(self):
        assert extract_markup(card(), BASE_URL)[0].external_id == "101"
        assert extract_markup(column(), BASE_URL)[0].external_id == "55"
        assert extract_markup("<p>nothing</p>", BASE_URL) == []

    def test_discover_max_page(self):
        assert discover_max_page(PAGINATOR) == 4
        assert discover_max_page(card()) == 1

    def test_page_url_sets_param(self):
        assert page_url("https://spb.quizplease.ru/schedule?format=0", 3) == (
            "https://spb.quizplease.ru/schedule?format=0&page=3"
        )
        assert page_url("https://spb.quizplease.ru/schedule?page=1", 2) == (
            "https://spb.quizplease.ru/schedule?page=2"
        )


class TestApiExtractor:
    """Tests for the JSON schedule API."""

    def payload(self, games, total_pages=3, status="ok"):
        return {"status": status, "data": {"data": games, "pagination": {"total_pages": total_pages}}}

    def game(self, **overrides):
        game = {
            "id": 123,
            "title": "Квиз, плиз!",
            "game_number": 1212,
            "date": "02.01.2027 20:00",
            "place": {"title": "Бар Шляпа", "address": "Невский, 1", "city": {"slug": "spb"}},
            "price": 500,
            "template": {"game_level": "Средняя"},
            "status": 4,
        }
        game.update(overrides)
        return game

    def test_parses_game(self):
        page = extract_api_page(self.payload([self.game()]), BASE_URL)
        assert page.total_pages == 3
        assert page.received == 1
        item = page.events[0]
        assert item.external_id == "123"
        assert item.title == "Квиз, плиз! #1212"
        assert item.date_text == "02.01.2027"
        assert item.time_text == "в 20:00"
        assert item.venue == "Бар Шляпа"
        assert item.price == "500 ₽"
        assert item.status == ""
        assert item.url == "https://spb.quizplease.ru/game/123"

    def test_template_title_names_the_package(self):
        game = self.game(title="Кино и сериалы", game_number=5, template={"title": "[кино и сериалы]"})
        item = extract_api_page(self.payload([game]), BASE_URL).events[0]
        event = normalize_event(item, "chat-1", BASE_URL, now=NOW)
        assert item.title == "Кино и сериалы #5"
        assert event.type_name == "[кино и сериалы]"
        assert event.group_key == "[кино и сериалы]#5"

    def test_unknown_fields_ignored_and_numbers_kept_as_text(self):
        game = ApiGame.model_validate(self.game(id=7, game_number=12, sponsor={"name": "x"}))
        assert (game.id, game.game_number) == ("7", "12")
        assert not hasattr(game, "sponsor")
        assert ApiGame.model_config["extra"] == "ignore"

    def test_skips_malformed_games(self):
        games = [self.game(), self.game(id=124, date="скоро"), {"id": 125}, "junk"]
        page = extract_api_page(self.payload(games), BASE_URL)
        assert [e.external_id for e in page.events] == ["123"]
        assert page.received == 4

    @pytest.mark.parametrize("payload", [
        {"status": "error"},
        [],
        None,
    ])
    def test_bad_envelope(self, payload):
        page = extract_api_page(payload, BASE_URL)
        assert page.events == []
        assert page.received == 0

    @pytest.mark.parametrize("url,code", [
        ("https://spb.quizplease.ru/schedule", 11),
        ("https://moscow.quizplease.ru/schedule?page=2", 4),
        ("https://atlantis.quizplease.ru/schedule", None),
        ("https://example.com/schedule", None),
    ])
    def test_city_codes(self, url: str, code):
        assert city_code_from_url(url) == code


class TestPatterns:
    @pytest.mark.parametrize("text,expected", [
        ("в 19:30", True),
        ("at 9:05", True),
        ("19:30", False),
        ("Бар Шляпа", False),
    ])
    def test_time_token(self, text: str, expected: bool):
        assert is_time_token(text) is expected

    def test_normalize_time_token(self):
        assert normalize_time_token("at 19:30") == "в 19:30"

    @pytest.mark.parametrize("url,expected", [
        ("https://spb.quizplease.ru/game/123", "123"),
        ("https://spb.quizplease.ru/game-page?id=77", "77"),
        ("https://spb.quizplease.ru/schedule", None),
    ])
    def test_external_id_from_url(self, url: str, expected):
        assert external_id_from_url(url) == expected
