"""2段階検索(候補ID取得 → 詳細取得 → 組み立て → 絞り込み)のテスト。"""

from __future__ import annotations

import pytest

from beatmap_catalog.catalog import BeatmapCatalog
from beatmap_catalog.config import SearchConfig
from beatmap_catalog.filters import Filters
from beatmap_catalog.search import (
    count_with_filters,
    fetch_detail_rows,
    find_all_with_filters,
    find_candidate_ids,
    find_random_with_filters,
)


class RecordingExecutor:
    """発行されたSQLを記録する QueryExecutor ラッパー。"""

    def __init__(self, inner):
        self.inner = inner
        self.statements: list[str] = []

    def fetch_all(self, sql, params=()):
        self.statements.append(sql)
        return self.inner.fetch_all(sql, params)

    def fetch_one(self, sql, params=()):
        self.statements.append(sql)
        return self.inner.fetch_one(sql, params)

    def fetch_scalar(self, sql, params=()):
        self.statements.append(sql)
        return self.inner.fetch_scalar(sql, params)


def _seed_many_sets(seeder, count: int, beatmaps_per_set: int = 3) -> list[int]:
    osu_ids = []
    for n in range(count):
        osu_id = 1000 + n
        set_id = seeder.beatmapset(osu_id, title=f"Song {n}")
        for k in range(beatmaps_per_set):
            beatmap_id, rate_id, _ = seeder.rated_beatmap(set_id, osu_id * 10 + k, score=1.0 + k)
            # rate違い・複数種別のレーティングで行を増幅させる
            seeder.rate(beatmap_id, centirate=150)
            seeder.rating(rate_id, 2.0 + k, "etterna")
        osu_ids.append(osu_id)
    return osu_ids


@pytest.mark.light
def test_love_example_reports_true_count_and_truncates(seeder, executor):
    set_id = seeder.beatmapset(555, title="Lovesick", artist="Someone")
    for k in range(8):
        seeder.rated_beatmap(set_id, 5550 + k, score=float(k + 1), difficulty=f"Diff {k}")
    other = seeder.beatmapset(556, title="Hate", artist="Other")
    seeder.rated_beatmap(other, 5600, score=3.0)

    results = find_all_with_filters(
        executor, Filters.from_dict({"beatmap": {"search_term": "love"}, "page": 0, "per_page": 9})
    )

    assert len(results) == 1
    summary = results[0]
    assert summary.osu_id == 555
    assert summary.total_beatmaps == 8
    assert len(summary.beatmaps) == 6
    assert [b.osu_id for b in summary.beatmaps] == [5550, 5551, 5552, 5553, 5554, 5557]


@pytest.mark.light
def test_search_term_matches_artist_title_and_creator_case_insensitively(seeder, executor):
    a = seeder.beatmapset(1, title="Blue Sky", artist="x", creator="y")
    b = seeder.beatmapset(2, title="x", artist="SKYRIM", creator="y")
    c = seeder.beatmapset(3, title="x", artist="y", creator="skylark")
    d = seeder.beatmapset(4, title="Nothing", artist="y", creator="z")
    for set_id in (a, b, c, d):
        seeder.rated_beatmap(set_id, None, score=1.0)

    filters = Filters.from_dict({"beatmap": {"search_term": "SKY"}})
    results = find_all_with_filters(executor, filters)

    assert [s.osu_id for s in results] == [1, 2, 3]
    assert count_with_filters(executor, filters) == 3


@pytest.mark.light
def test_search_term_matches_wildcards_literally(seeder, executor):
    a = seeder.beatmapset(1, title="100% Sure")
    b = seeder.beatmapset(2, title="1000 Sure")
    seeder.rated_beatmap(a, 10, score=1.0)
    seeder.rated_beatmap(b, 20, score=1.0)

    results = find_all_with_filters(executor, Filters.from_dict({"beatmap": {"search_term": "100%"}}))
    assert [s.osu_id for s in results] == [1]


@pytest.mark.light
@pytest.mark.parametrize(
    "term, expected",
    [
        ("ärger", [1, 2]),
        ("Ärger", [1, 2]),
        ("ÄRGER", [1, 2]),
        ("über", [1]),
        ("STRASSE", [3]),
        ("σοφία", [4]),
    ],
)
def test_search_term_folds_non_ascii_case(seeder, executor, term, expected):
    sets = [
        seeder.beatmapset(1, title="Ärger Über Alles"),
        seeder.beatmapset(2, title="x", artist="ÄRGER"),
        seeder.beatmapset(3, title="x", creator="Straße"),
        seeder.beatmapset(4, title="ΣΟΦΊΑ"),
        seeder.beatmapset(5, title="Arger"),
    ]
    for set_id in sets:
        seeder.rated_beatmap(set_id, None, score=1.0)

    filters = Filters.from_dict({"beatmap": {"search_term": term}})

    assert count_with_filters(executor, filters) == len(expected)
    assert [s.osu_id for s in find_all_with_filters(executor, filters)] == expected


@pytest.mark.light
def test_count_is_independent_of_pagination(seeder, executor):
    _seed_many_sets(seeder, 13)

    for page, per_page in ((0, 9), (1, 9), (5, 2), (100, 1)):
        filters = Filters(page=page, per_page=per_page)
        assert count_with_filters(executor, filters) == 13


@pytest.mark.light
def test_pages_cover_every_beatmap_exactly_once(seeder, executor):
    _seed_many_sets(seeder, 11, beatmaps_per_set=4)
    total = count_with_filters(executor, Filters())

    paged = []
    for page in range(0, 5):
        for summary in find_all_with_filters(executor, Filters(page=page, per_page=3)):
            paged.extend((summary.osu_id, b.osu_id) for b in summary.beatmaps)

    single = [
        (summary.osu_id, b.osu_id)
        for summary in find_all_with_filters(executor, Filters(page=0, per_page=total))
        for b in summary.beatmaps
    ]

    assert len(paged) == len(set(paged))
    assert set(paged) == set(single)
    assert len(single) == 11 * 4


@pytest.mark.light
def test_page_size_is_not_broken_by_join_fan_out(seeder, executor):
    osu_ids = _seed_many_sets(seeder, 10, beatmaps_per_set=5)

    first = find_all_with_filters(executor, Filters(page=0, per_page=4))
    last = find_all_with_filters(executor, Filters(page=2, per_page=4))

    assert [s.osu_id for s in first] == osu_ids[:4]
    assert [s.osu_id for s in last] == osu_ids[8:]
    assert all(s.total_beatmaps == 5 for s in first)


@pytest.mark.light
def test_default_per_page_comes_from_config(seeder, executor):
    _seed_many_sets(seeder, 12, beatmaps_per_set=1)

    assert len(find_candidate_ids(executor, Filters())) == 9
    assert len(find_candidate_ids(executor, Filters(), SearchConfig(default_per_page=4))) == 4


@pytest.mark.light
def test_empty_candidates_skip_detail_query(seeder, executor):
    _seed_many_sets(seeder, 2)
    recording = RecordingExecutor(executor)

    results = find_all_with_filters(recording, Filters.from_dict({"beatmap": {"search_term": "nomatch"}}))

    assert results == []
    assert len(recording.statements) == 1
    assert fetch_detail_rows(recording, Filters(), []) == []
    assert len(recording.statements) == 1


@pytest.mark.light
def test_rating_filter_restricts_beatmaps_and_ratings(seeder, executor):
    set_id = seeder.beatmapset(1)
    _, easy_rate, _ = seeder.rated_beatmap(set_id, 11, score=2.0)
    seeder.rating(easy_rate, 9.0, "etterna")
    seeder.rated_beatmap(set_id, 12, score=6.0)
    other = seeder.beatmapset(2)
    seeder.rated_beatmap(other, 21, score=1.0)

    filters = Filters.from_dict({"rating": {"rating_type": "osu", "rating_min": 1.5, "rating_max": 6}})
    results = find_all_with_filters(executor, filters)

    assert [s.osu_id for s in results] == [1]
    beatmaps = results[0].beatmaps
    assert [b.osu_id for b in beatmaps] == [11, 12]
    assert all(r.rating_type == "osu" for b in beatmaps for r in b.ratings)
    assert results[0].total_beatmaps == 2


@pytest.mark.light
def test_skillset_filter_checks_pattern_membership_and_column_bounds(seeder, executor):
    set_id = seeder.beatmapset(1)
    _, _, rating_a = seeder.rated_beatmap(set_id, 11, score=20.0, rating_type="etterna", mode=3, patterns=["stream", "jumpstream"])
    seeder.mania(rating_a, stream=25.0, jumpstream=18.0)
    _, _, rating_b = seeder.rated_beatmap(set_id, 12, score=22.0, rating_type="etterna", mode=3, patterns=["jackspeed"])
    seeder.mania(rating_b, stream=30.0, jackspeed=27.0)
    _, _, rating_c = seeder.rated_beatmap(set_id, 13, score=15.0, rating_type="etterna", mode=3, patterns=["stream"])
    seeder.mania(rating_c, stream=12.0)

    bounded = Filters.from_dict({"skillset": {"pattern_type": "stream", "pattern_min": 20, "pattern_max": 26}})
    results = find_all_with_filters(executor, bounded)
    assert [b.osu_id for b in results[0].beatmaps] == [11]
    assert results[0].beatmaps[0].ratings[0].mode_rating.stream == 25.0

    membership = Filters.from_dict({"skillset": {"pattern_type": "stream"}})
    results = find_all_with_filters(executor, membership, SearchConfig(default_rating_type="etterna"))
    assert [b.osu_id for b in results[0].beatmaps] == [13, 11]


@pytest.mark.light
def test_unknown_pattern_type_filters_by_membership_only(seeder, executor):
    set_id = seeder.beatmapset(1)
    seeder.rated_beatmap(set_id, 11, score=1.0, patterns=["zigzag"])
    seeder.rated_beatmap(set_id, 12, score=2.0, patterns=["stream"])

    filters = Filters.from_dict({"skillset": {"pattern_type": "zigzag", "pattern_min": 100}})
    results = find_all_with_filters(executor, filters)

    assert [b.osu_id for b in results[0].beatmaps] == [11]


@pytest.mark.light
def test_malformed_pattern_json_does_not_break_membership_filter(seeder, executor):
    set_id = seeder.beatmapset(1)
    seeder.rated_beatmap(set_id, 11, score=1.0, main_pattern="not json")
    seeder.rated_beatmap(set_id, 12, score=2.0, patterns=["stream"])

    results = find_all_with_filters(executor, Filters.from_dict({"skillset": {"pattern_type": "stream"}}))
    assert [b.osu_id for b in results[0].beatmaps] == [12]

    unfiltered = find_all_with_filters(executor, Filters())
    assert unfiltered[0].beatmaps[0].main_pattern == frozenset()


@pytest.mark.light
def test_technical_tempo_and_drain_filters(seeder, executor):
    set_id = seeder.beatmapset(1)
    seeder.rated_beatmap(set_id, 11, score=1.0, od=8, status="ranked",
                         rate_kwargs={"bpm": 200, "total_time": 100, "drain_time": 90})
    seeder.rated_beatmap(set_id, 12, score=1.0, od=4, status="ranked",
                         rate_kwargs={"bpm": 200, "total_time": 100, "drain_time": 90})
    seeder.rated_beatmap(set_id, 13, score=1.0, od=8, status="loved",
                         rate_kwargs={"bpm": 200, "total_time": 100, "drain_time": 90})
    seeder.rated_beatmap(set_id, 14, score=1.0, od=8, status="ranked",
                         rate_kwargs={"bpm": 120, "total_time": 100, "drain_time": 90})
    seeder.rated_beatmap(set_id, 15, score=1.0, od=8, status="ranked",
                         rate_kwargs={"bpm": 200, "total_time": 400, "drain_time": 90})
    seeder.rated_beatmap(set_id, 16, score=1.0, od=8, status="ranked",
                         rate_kwargs={"bpm": 200, "total_time": 100, "drain_time": 20})

    filters = Filters.from_dict(
        {
            "beatmap": {"bpm_min": 180, "bpm_max": 200, "total_time_min": 100, "total_time_max": 300},
            "beatmap_technical": {"od_min": 8, "od_max": 8, "status": "ranked"},
            "rates": {"drain_time_min": 90, "drain_time_max": 90},
        }
    )
    results = find_all_with_filters(executor, filters)

    assert [b.osu_id for b in results[0].beatmaps] == [11]


@pytest.mark.light
def test_only_canonical_rate_is_searched(seeder, executor):
    set_id = seeder.beatmapset(1)
    beatmap_id = seeder.beatmap(set_id, 11)
    fast = seeder.rate(beatmap_id, centirate=150, bpm=300)
    seeder.rating(fast, 9.0)

    assert count_with_filters(executor, Filters()) == 0
    assert count_with_filters(executor, Filters.from_dict({"beatmap": {"bpm_min": 250}})) == 0


@pytest.mark.light
def test_beatmaps_without_ratings_are_kept_without_rating_filter(seeder, executor):
    set_id = seeder.beatmapset(1)
    seeder.rated_beatmap(set_id, 11, score=None)
    seeder.rated_beatmap(set_id, 12, score=3.0)

    results = find_all_with_filters(executor, Filters())
    assert [b.osu_id for b in results[0].beatmaps] == [11, 12]
    assert results[0].beatmaps[0].ratings == []

    rated = find_all_with_filters(executor, Filters.from_dict({"rating": {"rating_min": 0}}))
    assert [b.osu_id for b in rated[0].beatmaps] == [12]


@pytest.mark.light
def test_random_sample_returns_distinct_matching_sets(seeder, executor):
    _seed_many_sets(seeder, 30, beatmaps_per_set=2)
    filters = Filters.from_dict({"beatmap": {"search_term": "song 1"}, "page": 3, "per_page": 1})

    orderings = set()
    for _ in range(20):
        results = find_random_with_filters(executor, filters)
        osu_ids = [s.osu_id for s in results]
        assert len(osu_ids) == len(set(osu_ids)) <= 9
        assert all("song 1" in s.title.lower() for s in results)
        orderings.add(tuple(osu_ids))

    # "Song 1", "Song 10".."Song 19" の11件から9件
    assert len(results) == 9
    assert len(orderings) > 1


@pytest.mark.light
def test_random_sample_size_is_configurable(seeder, executor):
    _seed_many_sets(seeder, 5, beatmaps_per_set=1)
    results = find_random_with_filters(executor, Filters(), SearchConfig(random_sample_size=2))
    assert len(results) == 2


@pytest.mark.light
def test_catalog_facade_accepts_request_mappings(seeder, executor):
    _seed_many_sets(seeder, 3, beatmaps_per_set=2)
    catalog = BeatmapCatalog(executor)

    assert catalog.count({"page": 5}) == 3
    assert [s.osu_id for s in catalog.search({"per_page": 2, "page": 1})] == [1002]
    assert len(catalog.random_sample(None)) == 3
