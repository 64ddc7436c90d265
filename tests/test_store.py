import threading

import pytest

from errors import UpdateRejected
from models import CollectionTask, TaskStatus, VerificationJudgment
from store import MemoryLedger, MemoryTaskStore, apply_status_transition, build_impact_data, parse_amount


def make_task(**overrides):
    data = dict(id=1, location="Jl. Sudirman 12", wasteType="Food Waste", amount="4", date="2026-10-01")
    data.update(overrides)
    return CollectionTask(**data)


class TestStatusTransitions:
    def test_claim_binds_collector(self):
        claimed = apply_status_transition(make_task(), TaskStatus.IN_PROGRESS, 7)
        assert claimed.status == TaskStatus.IN_PROGRESS
        assert claimed.collectorId == 7

    def test_cannot_claim_twice(self):
        claimed = make_task(status=TaskStatus.IN_PROGRESS, collectorId=7)
        with pytest.raises(UpdateRejected, match="already been claimed"):
            apply_status_transition(claimed, TaskStatus.IN_PROGRESS, 8)

    def test_only_claimant_completes(self):
        claimed = make_task(status=TaskStatus.IN_PROGRESS, collectorId=7)
        with pytest.raises(UpdateRejected):
            apply_status_transition(claimed, TaskStatus.COMPLETED, 8)
        assert apply_status_transition(claimed, TaskStatus.COMPLETED, 7).status == TaskStatus.COMPLETED

    @pytest.mark.parametrize("current", [TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED])
    def test_verify_from_claimed_states(self, current):
        task = make_task(status=current, collectorId=7)
        verified = apply_status_transition(task, TaskStatus.VERIFIED, 7)
        assert verified.status == TaskStatus.VERIFIED
        assert verified.collectorId == 7

    @pytest.mark.parametrize("current,target", [
        (TaskStatus.PENDING, TaskStatus.VERIFIED),
        (TaskStatus.PENDING, TaskStatus.COMPLETED),
        (TaskStatus.VERIFIED, TaskStatus.VERIFIED),
        (TaskStatus.VERIFIED, TaskStatus.PENDING),
        (TaskStatus.COMPLETED, TaskStatus.IN_PROGRESS),
    ])
    def test_rejected_transitions(self, current, target):
        task = make_task(status=current, collectorId=None if current == TaskStatus.PENDING else 7)
        with pytest.raises(UpdateRejected):
            apply_status_transition(task, target, 7)

    def test_unknown_status(self):
        with pytest.raises(UpdateRejected, match="Unknown status"):
            apply_status_transition(make_task(), "archived", 7)


class TestMemoryTaskStore:
    def test_update_of_missing_task(self, task_store):
        with pytest.raises(UpdateRejected):
            task_store.update_status(99, TaskStatus.IN_PROGRESS, 1)

    def test_rejected_update_leaves_task_untouched(self, task_store):
        task_store.update_status(1, TaskStatus.IN_PROGRESS, 1)
        with pytest.raises(UpdateRejected):
            task_store.update_status(1, TaskStatus.IN_PROGRESS, 2)
        task = task_store.get_task(1)
        assert task.status == TaskStatus.IN_PROGRESS
        assert task.collectorId == 1

    def test_concurrent_claims_have_one_winner(self, task_store):
        collectors = range(1, 21)
        barrier = threading.Barrier(len(collectors))
        winners, losers = [], []

        def claim(user_id):
            barrier.wait()
            try:
                task_store.update_status(2, TaskStatus.IN_PROGRESS, user_id)
                winners.append(user_id)
            except UpdateRejected:
                losers.append(user_id)

        threads = [threading.Thread(target=claim, args=(u,)) for u in collectors]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(winners) == 1
        assert len(losers) == len(collectors) - 1
        assert task_store.get_task(2).collectorId == winners[0]

    def test_create_task_assigns_next_id(self, task_store):
        task = task_store.create_task("Kota Tua", "Glass", "1.5", "2026-10-18")
        assert task.id == 4
        assert task.status == TaskStatus.PENDING
        assert task.collectorId is None
        assert task_store.list_tasks()[-1] == task

    def test_list_tasks_for_user(self, task_store):
        task_store.update_status(3, TaskStatus.IN_PROGRESS, 5)
        assert [t.id for t in task_store.list_tasks_for_user(5)] == [3]
        assert task_store.list_tasks_for_user(6) == []


class TestLedgerAndImpact:
    def test_balance_sums_rewards_per_user(self, ledger):
        ledger.append_reward(1, 12)
        ledger.append_reward(1, 30)
        ledger.append_reward(2, 59)
        assert ledger.get_balance(1) == 42
        assert ledger.get_balance(2) == 59
        assert ledger.get_balance(3) == 0

    def test_impact_counts_only_verified_waste(self, task_store, ledger):
        task_store.update_status(1, TaskStatus.IN_PROGRESS, 1)
        task_store.update_status(1, TaskStatus.VERIFIED, 1)
        task_store.update_status(2, TaskStatus.IN_PROGRESS, 2)
        ledger.append_reward(1, 20)

        impact = ledger.get_impact_data()

        assert impact.wasteCollected == 4.0
        assert impact.reportsSubmitted == 3
        assert impact.tokensEarned == 20
        assert impact.co2Offset == 2.0

    def test_impact_tolerates_unit_suffixes(self):
        tasks = [
            make_task(id=1, amount="3 kg", status=TaskStatus.VERIFIED, collectorId=1),
            make_task(id=2, amount="lots", status=TaskStatus.VERIFIED, collectorId=1),
        ]
        impact = build_impact_data(tasks, 0)
        assert impact.wasteCollected == 3.0
        assert impact.co2Offset == 1.5

    def test_empty_store(self):
        impact = MemoryLedger(MemoryTaskStore()).get_impact_data()
        assert impact.model_dump() == {"wasteCollected": 0.0, "reportsSubmitted": 0,
                                       "tokensEarned": 0, "co2Offset": 0.0}


@pytest.mark.parametrize("value,expected", [
    ("4", 4.0),
    ("2.5", 2.5),
    (" 2.5 kg", 2.5),
    (3, 3.0),
    ("kg", None),
    (None, None),
])
def test_parse_amount(value, expected):
    assert parse_amount(value) == expected


class TestCommitVerification:
    JUDGMENT = VerificationJudgment(wasteType="Food Waste", quantity="4", confidence=0.9)

    def test_books_reward_and_record_with_the_status_change(self, task_store, ledger):
        task_store.update_status(1, TaskStatus.IN_PROGRESS, 1)

        reward = ledger.commit_verification(1, 1, 33, self.JUDGMENT, True, True)

        assert reward.amount == 33
        assert task_store.get_task(1).status == TaskStatus.VERIFIED
        assert ledger.get_balance(1) == 33
        assert [w.taskId for w in ledger.collected_wastes] == [1]

    def test_rejected_transition_books_nothing(self, task_store, ledger):
        task_store.update_status(1, TaskStatus.IN_PROGRESS, 1)

        with pytest.raises(UpdateRejected):
            ledger.commit_verification(1, 2, 33, self.JUDGMENT, True, True)

        assert ledger.rewards == []
        assert ledger.collected_wastes == []

    def test_second_commit_is_rejected(self, task_store, ledger):
        task_store.update_status(1, TaskStatus.IN_PROGRESS, 1)
        ledger.commit_verification(1, 1, 33, self.JUDGMENT, True, True)

        with pytest.raises(UpdateRejected):
            ledger.commit_verification(1, 1, 20, self.JUDGMENT, True, True)
        assert ledger.get_balance(1) == 33
