from datetime import date, datetime, timedelta

from analytics import _percent, category_stats, quadrant_stats, report, summary, time_trends, urgency_stats
from dates import end_of_day_utc

from .fakes import record

NOW = datetime(2024, 1, 10, 12, 0, 0)
TODAY = date(2024, 1, 10)


def test_percent_rounds_half_up():
    assert _percent(2, 3) == 67
    assert _percent(1, 8) == 13
    assert _percent(1, 3) == 33
    assert _percent(0, 0) == 0


def test_summary_counts_overdue_pending_tasks():
    tasks = [
        record(1, status='done', due_at=NOW - timedelta(days=1)),
        record(2, due_at=NOW - timedelta(hours=1)),
        record(3, due_at=NOW + timedelta(hours=1)),
        record(4),
    ]

    assert summary(tasks, NOW) == {
        'total': 4,
        'done': 1,
        'pending': 3,
        'overdue': 1,
        'completionRate': 25,
    }


def test_time_trends_bucket_by_due_day():
    due = end_of_day_utc(date(2024, 1, 9))
    tasks = [
        record(1, status='done', due_at=due, completed_at=due - timedelta(hours=3)),
        record(2, status='done', due_at=due, completed_at=due + timedelta(hours=1)),
        record(3, date='2024-01-10'),
        record(4, status='done', date='2024-01-10'),
        record(5, due_at=end_of_day_utc(date(2024, 1, 1))),
    ]

    trends = time_trends(tasks, TODAY, days=3)

    assert [row['date'] for row in trends] == ['2024-01-08', '2024-01-09', '2024-01-10']
    assert trends[0] == {'date': '2024-01-08', 'due': 0, 'onTime': 0, 'completionRate': 0}
    assert (trends[1]['due'], trends[1]['onTime'], trends[1]['completionRate']) == (2, 1, 50)
    assert (trends[2]['due'], trends[2]['onTime'], trends[2]['completionRate']) == (2, 1, 50)


def test_quadrant_stats():
    tasks = [
        record(1, quadrant='IU', due_at=NOW - timedelta(days=1)),
        record(2, quadrant='IU', status='done', due_at=NOW, completed_at=NOW + timedelta(hours=2)),
        record(3, quadrant='NU', status='done'),
        record(4, quadrant='ZZ'),
    ]

    stats = quadrant_stats(tasks, NOW)

    assert stats['IU'] == {'total': 2, 'done': 1, 'procrastinated': 2, 'withDue': 2}
    assert stats['NU'] == {'total': 1, 'done': 1, 'procrastinated': 0, 'withDue': 0}
    assert stats['NN']['total'] == 1
    assert stats['IN']['total'] == 0


def test_category_stats_sorted_by_size():
    tasks = [
        record(1, categories=['work'], status='done'),
        record(2, categories=['work', 'life'], due_at=NOW - timedelta(days=1)),
        record(3, categories=['work'], status='abandoned'),
        record(4),
    ]

    rows = category_stats(tasks, NOW)

    assert [row['name'] for row in rows] == ['work', 'life', 'uncategorized']
    work = rows[0]
    assert (work['total'], work['done'], work['pending'], work['abandoned'], work['overdue']) == (3, 1, 1, 1, 1)
    assert work['doneRate'] == 33
    assert rows[1]['overdueRate'] == 100


def test_urgency_windows():
    tasks = [
        record(1, due_at=NOW + timedelta(hours=12)),
        record(2, due_at=NOW + timedelta(days=2)),
        record(3, due_at=NOW + timedelta(days=5)),
        record(4, due_at=NOW + timedelta(days=10)),
        record(5, due_at=NOW - timedelta(hours=2)),
        record(6, due_at=NOW - timedelta(days=30)),
        record(7, status='done', due_at=NOW - timedelta(days=30)),
        record(8),
    ]

    assert urgency_stats(tasks, NOW) == {
        'upcoming': {'24h': 1, '3d': 1, '7d': 1, 'future': 1},
        'overdue': {'24h': 1, '3d': 0, '7d': 0, 'long': 1},
    }


def test_report_sections():
    result = report([record(1)], now=NOW, today=TODAY)

    assert set(result) == {'summary', 'timeTrends', 'quadrants', 'categories', 'urgency'}
    assert len(result['timeTrends']) == 30
    assert result['timeTrends'][-1]['date'] == '2024-01-10'
