"""Tests for the application-facing service boundary."""

import asyncio
import json
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
import yaml

from newsdigest.config import Config
from newsdigest.core.article import Article
from newsdigest.core.errors import ValidationError
from newsdigest.core.preferences import UserPreferences
from newsdigest.core.service import build_service

from conftest import BASE_TIME, make_entry, make_record


def read_event(slug="a1", **overrides):
    event = {
        'url': f'https://news.example.com/{slug}',
        'title': 'New vaccine treatment helps hospital patients',
        'description': 'Doctors report progress.',
        'sentiment': 'Positive',
    }
    event.update(overrides)
    return event


class TestGetDigest:
    @pytest.mark.asyncio
    async def test_invalid_preferences_rejected_before_fetching(self, service, source):
        with pytest.raises(ValidationError):
            await service.get_digest(1, {'interests': ['ai'], 'maxArticles': -1})
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_unknown_sentiment_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.get_digest(1, {'interests': ['ai'], 'sentimentFilter': 'angry'})

    @pytest.mark.asyncio
    async def test_payload_saved_and_digest_returned(self, service, source, preference_store):
        source.topics['ai'] = [make_record('a1')]

        digest = await service.get_digest(1, {
            'interests': ['ai'], 'sentimentFilter': 'ALL', 'maxArticles': '5', 'language': 'en'
        })

        assert [a.url for a in digest] == ['https://news.example.com/a1']
        assert preference_store.get(1) == UserPreferences(
            interests=['ai'], sentiment_filter='all', language='en', max_articles=5)

    @pytest.mark.asyncio
    async def test_clear_cache_brings_articles_back(self, service, source):
        source.topics['ai'] = [make_record('a1')]

        assert len(await service.get_digest(1, {'interests': ['ai']})) == 1
        assert await service.get_digest(1, {'interests': ['ai']}) == []

        assert await service.clear_cache(1) == 1
        assert len(await service.get_digest(1, {'interests': ['ai']})) == 1


class TestTrackRead:
    @pytest.mark.asyncio
    async def test_records_category_and_sentiment(self, service, history_store):
        assert await service.track_read(1, read_event()) is True

        [entry] = history_store.query(1)
        assert entry.category == 'health'
        assert entry.sentiment == 'positive'
        assert entry.read_at == BASE_TIME

    @pytest.mark.asyncio
    async def test_duplicate_reads_recorded_once(self, service, history_store, preference_store):
        assert await service.track_read(1, read_event()) is True
        assert await service.track_read(1, read_event()) is False

        assert history_store.count(1) == 1
        assert preference_store.read_count(1) == 1

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_reads_recorded_once(self, service, history_store, preference_store):
        results = await asyncio.gather(*[service.track_read(1, read_event()) for _ in range(5)])

        assert results.count(True) == 1
        assert history_store.count(1) == 1
        assert preference_store.read_count(1) == 1

    @pytest.mark.asyncio
    async def test_same_url_for_different_users(self, service, history_store):
        assert await service.track_read(1, read_event())
        assert await service.track_read(2, read_event())
        assert history_store.count(1) == history_store.count(2) == 1

    @pytest.mark.asyncio
    async def test_accepts_article_objects(self, service, history_store):
        article = Article(title='Football championship final', url='https://x.example/1',
                          description='The team won the match.', sentiment='neutral')
        assert await service.track_read(1, article)
        assert history_store.query(1)[0].category == 'sports'

    @pytest.mark.asyncio
    async def test_missing_url_ignored(self, service, history_store):
        assert await service.track_read(1, read_event(url='')) is False
        assert history_store.count(1) == 0

    @pytest.mark.asyncio
    async def test_clear_history(self, service, history_store):
        await service.track_read(1, read_event('a1'))
        await service.track_read(1, read_event('a2'))

        assert await service.clear_history(1) == 2
        assert history_store.count(1) == 0


class TestStatsAndProfile:
    def test_stats_bucket_by_date(self, service, history_store):
        history_store.append(make_entry(1, 1, read_at=BASE_TIME - timedelta(hours=1)))
        history_store.append(make_entry(1, 2, read_at=BASE_TIME - timedelta(days=1)))
        history_store.append(make_entry(1, 3, read_at=BASE_TIME - timedelta(days=6)))
        history_store.append(make_entry(1, 4, read_at=BASE_TIME - timedelta(days=10)))

        stats = service.get_stats(1)

        assert stats.to_dict() == {'today': 1, 'week': 3, 'total': 4}

    def test_stats_for_unknown_user(self, service):
        assert service.get_stats(99).to_dict() == {'today': 0, 'week': 0, 'total': 0}

    @pytest.mark.asyncio
    async def test_profile_summary(self, service, history_store, clock):
        await service.track_read(1, read_event('a1'))
        await service.track_read(1, read_event('a2'))
        clock.advance(days=1)
        await service.track_read(1, read_event('a3', title='Football championship tonight',
                                               sentiment='negative'))

        summary = service.profile_summary(1)

        assert summary['articles_read'] == 3
        assert summary['favorite_category'] == 'health'
        assert summary['preferred_sentiment'] == 'positive'
        assert summary['chart_data'] == [0, 0, 0, 0, 0, 2, 1]
        assert len(summary['chart_labels']) == 7

    def test_profile_summary_defaults(self, service):
        summary = service.profile_summary(5)
        assert summary['favorite_category'] == 'general'
        assert summary['preferred_sentiment'] == 'all'
        assert summary['interests'] == ['technology']

    @pytest.mark.asyncio
    async def test_export_is_json_serializable(self, service):
        service.save_preferences(1, {'interests': ['ai', 'science']})
        await service.track_read(1, read_event())

        exported = service.export_user_data(1)

        json.dumps(exported)
        assert exported['preferences']['interests'] == ['ai', 'science']
        assert exported['reading_history'][0]['article_url'] == 'https://news.example.com/a1'


class TestAutoAdjust:
    @pytest.mark.asyncio
    async def test_insufficient_history(self, service):
        service.save_preferences(1, {'interests': ['ai']})
        for n in range(9):
            await service.track_read(1, read_event(f'a{n}'))

        result = service.auto_adjust(1)

        assert result.changed is False
        assert service.get_preferences(1).interests == ['ai']

    @pytest.mark.asyncio
    async def test_adjusts_after_enough_reads(self, service):
        service.save_preferences(1, {'interests': ['ai']})
        for n in range(10):
            await service.track_read(1, read_event(f'a{n}'))

        result = service.auto_adjust(1)

        assert result.changed is True
        assert service.get_preferences(1).interests == ['health']
        assert service.get_preferences(1).sentiment_filter == 'positive'

    def test_failure_reported_not_raised(self, service):
        service.adaptation = MagicMock()
        service.adaptation.auto_adjust.side_effect = RuntimeError("db down")

        result = service.auto_adjust(1)

        assert result.changed is False
        assert result.to_dict()['success'] is False

    @pytest.mark.asyncio
    async def test_adjusts_reader_who_never_saved_preferences(self, service, preference_store):
        for n in range(12):
            await service.track_read(5, read_event(f'a{n}'))

        result = service.auto_adjust(5)

        assert result.changed is True
        assert preference_store.get(5).interests == ['health']
        assert preference_store.read_count(5) == 12


class TestPreferencePersistence:
    @pytest.mark.asyncio
    async def test_empty_interests_keep_stored_ones(self, service, source, preference_store):
        service.save_preferences(1, {'interests': ['ai', 'space']})

        await service.get_digest(1, {'interests': [], 'sentimentFilter': 'negative'})

        stored = preference_store.get(1)
        assert stored.interests == ['ai', 'space']
        assert stored.sentiment_filter == 'negative'
        assert source.calls[0][0] == 'headlines'

    @pytest.mark.asyncio
    async def test_empty_interests_for_new_user_store_defaults(self, service, preference_store):
        await service.get_digest(2, {'interests': []})
        assert preference_store.get(2).interests == ['technology']


class TestSentimentLabels:
    @pytest.mark.asyncio
    @pytest.mark.parametrize('label, stored', [
        ('bogus', 'neutral'),
        (None, 'neutral'),
        (' NEGATIVE ', 'negative'),
        ('all', 'neutral'),
    ])
    async def test_labels_normalized(self, service, history_store, label, stored):
        await service.track_read(1, read_event(sentiment=label))
        assert history_store.query(1)[0].sentiment == stored


class TestBuildService:
    def test_config_file_reaches_every_component(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text(yaml.safe_dump({
            'storage': {'backend': 'memory'},
            'sentiment': {'backend': 'keyword'},
            'http': {'max_tries': 5},
            'digest': {'min_title_length': 2, 'min_description_length': 4, 'page_size': 7},
            'adaptation': {'min_total_entries': 3, 'window_days': 7},
        }))

        built = build_service(Config(str(path)))

        assert built.adaptation.min_total_entries == 3
        assert built.adaptation.window == timedelta(days=7)
        assert built.aggregator.min_title_length == 2
        assert built.aggregator.min_description_length == 4
        assert built.aggregator.page_size == 7
        assert built.aggregator.source.max_tries == 5

    @pytest.mark.asyncio
    async def test_short_articles_pass_configured_thresholds(self, tmp_path, source):
        path = tmp_path / 'config.yaml'
        path.write_text(yaml.safe_dump({
            'storage': {'backend': 'memory'},
            'sentiment': {'backend': 'keyword'},
            'digest': {'min_title_length': 2, 'min_description_length': 4},
        }))
        source.topics['ai'] = [make_record('s1', title='AI wins', description='Short text')]

        built = build_service(Config(str(path)), source=source)
        digest = await built.get_digest(1, {'interests': ['ai']})

        assert [a.url for a in digest] == ['https://news.example.com/s1']
