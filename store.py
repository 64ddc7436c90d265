"""
Persistence for collection tasks, rewards and users.

Two backends share the same interface and the same transition rule:
Firestore for deployed environments and an in-process memory store for local
development and tests. Status transitions are atomic in both, so two
collectors racing to claim the same pending task produce exactly one winner.
"""

import itertools
import logging
import re
import threading
import datetime
from typing import List, Optional

from google.cloud import firestore

from errors import UpdateRejected
from models import CollectionTask, CollectedWaste, ImpactData, Reward, TaskStatus, User

logger = logging.getLogger(__name__)

CO2_OFFSET_PER_KG = 0.5

TASKS_COLLECTION = 'collection_tasks'
REWARDS_COLLECTION = 'rewards'
COLLECTED_WASTES_COLLECTION = 'collected_wastes'
USERS_COLLECTION = 'users'
EMAIL_MAPPINGS_COLLECTION = 'email_mappings'
COUNTERS_COLLECTION = 'counters'


def apply_status_transition(task: CollectionTask, new_status: str, acting_user_id: int) -> CollectionTask:
    """
    Returns the task as it looks after `acting_user_id` moves it to `new_status`,
    or raises UpdateRejected. Claiming binds the collector; only that collector
    may complete or verify the task afterwards.
    """
    if new_status not in TaskStatus.ALL:
        raise UpdateRejected(f"Unknown status '{new_status}'.", {"taskId": task.id})

    details = {"taskId": task.id, "currentStatus": task.status, "requestedStatus": new_status}

    if new_status == TaskStatus.IN_PROGRESS:
        if task.status != TaskStatus.PENDING:
            raise UpdateRejected("Task has already been claimed by a collector.", details)
        return task.model_copy(update={'status': new_status, 'collectorId': acting_user_id})

    if new_status == TaskStatus.COMPLETED:
        allowed_from = (TaskStatus.IN_PROGRESS,)
    elif new_status == TaskStatus.VERIFIED:
        allowed_from = (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED)
    else:
        raise UpdateRejected("Tasks cannot be moved back to pending.", details)

    if task.status not in allowed_from:
        raise UpdateRejected(f"Task cannot move from {task.status} to {new_status}.", details)
    if task.collectorId != acting_user_id:
        raise UpdateRejected("Only the collector who claimed this task can complete it.", details)
    return task.model_copy(update={'status': new_status})


_LEADING_NUMBER = re.compile(r"\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)")


def parse_amount(value) -> Optional[float]:
    """Reads the leading number of a quantity such as "2.5" or "2.5 kg"; None if there is none."""
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return None
    match = _LEADING_NUMBER.match(value)
    return float(match.group(1)) if match else None


def build_impact_data(tasks: List[CollectionTask], tokens_earned: int) -> ImpactData:
    waste_collected = sum(
        parse_amount(t.amount) or 0.0 for t in tasks if t.status == TaskStatus.VERIFIED
    )
    return ImpactData(
        wasteCollected=round(waste_collected, 1),
        reportsSubmitted=len(tasks),
        tokensEarned=tokens_earned,
        co2Offset=round(waste_collected * CO2_OFFSET_PER_KG, 1),
    )


def _utc_now_iso():
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def _collected_waste_record(task_id, user_id, judgment, waste_type_match, quantity_match) -> CollectedWaste:
    return CollectedWaste(
        taskId=task_id, userId=user_id, collectionDate=_utc_now_iso(),
        wasteType=judgment.wasteType, quantity=judgment.quantity, confidence=judgment.confidence,
        wasteTypeMatch=waste_type_match, quantityMatch=quantity_match,
    )


# --- In-memory backend ---

class MemoryTaskStore:
    def __init__(self, tasks=None):
        self._lock = threading.Lock()
        self._tasks = {}
        self._ids = itertools.count(1)
        for task in tasks or []:
            self._tasks[task.id] = task
        if self._tasks:
            self._ids = itertools.count(max(self._tasks) + 1)

    def list_tasks(self) -> List[CollectionTask]:
        with self._lock:
            return [self._tasks[k] for k in sorted(self._tasks)]

    def list_tasks_for_user(self, user_id: int) -> List[CollectionTask]:
        return [t for t in self.list_tasks() if t.collectorId == user_id]

    def get_task(self, task_id: int) -> Optional[CollectionTask]:
        with self._lock:
            return self._tasks.get(task_id)

    def create_task(self, location: str, waste_type: str, amount: str, date: str) -> CollectionTask:
        with self._lock:
            task = CollectionTask(id=next(self._ids), location=location, wasteType=waste_type,
                                  amount=amount, date=date, status=TaskStatus.PENDING)
            self._tasks[task.id] = task
            return task

    def update_status(self, task_id: int, new_status: str, acting_user_id: int, on_commit=None) -> CollectionTask:
        """
        `on_commit(updated_task)` runs under the store lock before the new status
        is stored; if it raises, the task keeps its old status.
        """
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise UpdateRejected("Task not found.", {"taskId": task_id})
            updated = apply_status_transition(task, new_status, acting_user_id)
            if on_commit is not None:
                on_commit(updated)
            self._tasks[task_id] = updated
            logger.info(f"Task {task_id} moved {task.status} -> {new_status} by user {acting_user_id}")
            return updated

    def health_check(self):
        return {"status": "OK", "details": f"Memory task store holds {len(self._tasks)} task(s)."}


class MemoryLedger:
    def __init__(self, task_store: MemoryTaskStore):
        self._lock = threading.Lock()
        self._task_store = task_store
        self.rewards: List[Reward] = []
        self.collected_wastes: List[CollectedWaste] = []

    def append_reward(self, user_id: int, amount: int) -> Reward:
        reward = Reward(userId=user_id, amount=amount)
        with self._lock:
            self.rewards.append(reward)
        logger.info(f"Awarded {amount} tokens to user {user_id}")
        return reward

    def append_collected_waste(self, task_id, user_id, judgment, waste_type_match, quantity_match) -> CollectedWaste:
        record = _collected_waste_record(task_id, user_id, judgment, waste_type_match, quantity_match)
        with self._lock:
            self.collected_wastes.append(record)
        return record

    def commit_verification(self, task_id, user_id, amount, judgment, waste_type_match, quantity_match) -> Reward:
        """Moves the task to `verified` and books its reward and collected-waste record as one step."""
        rewards = []

        def book(_updated_task):
            rewards.append(self.append_reward(user_id, amount))
            self.append_collected_waste(task_id, user_id, judgment, waste_type_match, quantity_match)

        try:
            self._task_store.update_status(task_id, TaskStatus.VERIFIED, user_id, on_commit=book)
        except Exception:
            # The task keeps its old status, so a reward booked before the failure is taken back
            if rewards:
                with self._lock:
                    self.rewards.remove(rewards[0])
            raise
        return rewards[0]

    def get_balance(self, user_id: int) -> int:
        with self._lock:
            return sum(r.amount for r in self.rewards if r.userId == user_id)

    def get_impact_data(self) -> ImpactData:
        with self._lock:
            tokens = sum(r.amount for r in self.rewards)
        return build_impact_data(self._task_store.list_tasks(), tokens)


class MemoryUserDirectory:
    def __init__(self):
        self._lock = threading.Lock()
        self._users = {}
        self._ids = itertools.count(1)

    def create_user(self, email: str, name: str, password_hash: str) -> Optional[User]:
        email = email.lower()
        with self._lock:
            if any(u.email == email for u in self._users.values()):
                return None
            user = User(id=next(self._ids), email=email, name=name, passwordHash=password_hash)
            self._users[user.id] = user
            return user

    def get_user(self, user_id: int) -> Optional[User]:
        with self._lock:
            return self._users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        email = email.lower()
        with self._lock:
            return next((u for u in self._users.values() if u.email == email), None)


# --- Firestore backend ---

@firestore.transactional
def _next_id_transaction(transaction, counter_ref):
    snapshot = counter_ref.get(transaction=transaction)
    current = snapshot.to_dict().get('value', 0) if snapshot.exists else 0
    transaction.set(counter_ref, {'value': current + 1})
    return current + 1


@firestore.transactional
def _update_status_transaction(transaction, task_ref, new_status, acting_user_id):
    snapshot = task_ref.get(transaction=transaction)
    if not snapshot.exists:
        raise UpdateRejected("Task not found.", {"taskId": task_ref.id})
    task = CollectionTask.model_validate(snapshot.to_dict())
    updated = apply_status_transition(task, new_status, acting_user_id)
    transaction.update(task_ref, {
        'status': updated.status,
        'collectorId': updated.collectorId,
        'updatedAt': firestore.SERVER_TIMESTAMP,
    })
    return updated


@firestore.transactional
def _commit_verification_transaction(transaction, db, task_ref, user_id, reward, record):
    snapshot = task_ref.get(transaction=transaction)
    if not snapshot.exists:
        raise UpdateRejected("Task not found.", {"taskId": task_ref.id})
    task = CollectionTask.model_validate(snapshot.to_dict())
    updated = apply_status_transition(task, TaskStatus.VERIFIED, user_id)

    # All reads happen above; Firestore transactions require reads before writes
    transaction.update(task_ref, {
        'status': updated.status,
        'updatedAt': firestore.SERVER_TIMESTAMP,
    })
    transaction.set(db.collection(REWARDS_COLLECTION).document(), {
        **reward.model_dump(), 'taskId': task.id, 'createdAt': firestore.SERVER_TIMESTAMP,
    })
    transaction.update(db.collection(USERS_COLLECTION).document(str(user_id)),
                       {'balance': firestore.Increment(reward.amount)})
    transaction.set(db.collection(COLLECTED_WASTES_COLLECTION).document(), record.model_dump())
    return updated


@firestore.transactional
def _create_user_and_mapping_transaction(transaction, db, user_id, user_data):
    mapping_ref = db.collection(EMAIL_MAPPINGS_COLLECTION).document(user_data['email'])
    if mapping_ref.get(transaction=transaction).exists:
        return False
    transaction.set(db.collection(USERS_COLLECTION).document(str(user_id)), user_data)
    transaction.set(mapping_ref, {'userId': user_id})
    return True


def _next_id(db, counter_name):
    counter_ref = db.collection(COUNTERS_COLLECTION).document(counter_name)
    return _next_id_transaction(db.transaction(), counter_ref)


class FirestoreTaskStore:
    def __init__(self, db):
        self.db = db

    def _collection(self):
        return self.db.collection(TASKS_COLLECTION)

    def list_tasks(self) -> List[CollectionTask]:
        query = self._collection().order_by('id')
        return [CollectionTask.model_validate(doc.to_dict()) for doc in query.stream()]

    def list_tasks_for_user(self, user_id: int) -> List[CollectionTask]:
        # This query requires a composite index in Firestore on (collectorId, id)
        query = self._collection().where(
            filter=firestore.FieldFilter('collectorId', '==', user_id)
        ).order_by('id')
        return [CollectionTask.model_validate(doc.to_dict()) for doc in query.stream()]

    def get_task(self, task_id: int) -> Optional[CollectionTask]:
        doc = self._collection().document(str(task_id)).get()
        if not doc.exists:
            return None
        return CollectionTask.model_validate(doc.to_dict())

    def create_task(self, location: str, waste_type: str, amount: str, date: str) -> CollectionTask:
        task = CollectionTask(id=_next_id(self.db, TASKS_COLLECTION), location=location,
                              wasteType=waste_type, amount=amount, date=date)
        data = task.model_dump()
        data['createdAt'] = firestore.SERVER_TIMESTAMP
        self._collection().document(str(task.id)).set(data)
        return task

    def update_status(self, task_id: int, new_status: str, acting_user_id: int) -> CollectionTask:
        task_ref = self._collection().document(str(task_id))
        updated = _update_status_transaction(self.db.transaction(), task_ref, new_status, acting_user_id)
        logger.info(f"Task {task_id} moved to {new_status} by user {acting_user_id}")
        return updated

    def health_check(self):
        try:
            _ = list(self._collection().limit(1).stream())
            return {"status": "OK", "details": "Firestore task collection is accessible."}
        except Exception as e:
            return {"status": "ERROR", "details": f"Failed to query Firestore tasks: {str(e)}"}


class FirestoreLedger:
    def __init__(self, db, task_store: FirestoreTaskStore):
        self.db = db
        self.task_store = task_store

    def append_reward(self, user_id: int, amount: int) -> Reward:
        reward = Reward(userId=user_id, amount=amount)
        batch = self.db.batch()
        batch.set(self.db.collection(REWARDS_COLLECTION).document(), {
            **reward.model_dump(), 'createdAt': firestore.SERVER_TIMESTAMP,
        })
        batch.update(self.db.collection(USERS_COLLECTION).document(str(user_id)),
                     {'balance': firestore.Increment(amount)})
        batch.commit()
        logger.info(f"Awarded {amount} tokens to user {user_id}")
        return reward

    def append_collected_waste(self, task_id, user_id, judgment, waste_type_match, quantity_match) -> CollectedWaste:
        record = _collected_waste_record(task_id, user_id, judgment, waste_type_match, quantity_match)
        self.db.collection(COLLECTED_WASTES_COLLECTION).add(record.model_dump())
        return record

    def commit_verification(self, task_id, user_id, amount, judgment, waste_type_match, quantity_match) -> Reward:
        reward = Reward(userId=user_id, amount=amount)
        record = _collected_waste_record(task_id, user_id, judgment, waste_type_match, quantity_match)
        task_ref = self.db.collection(TASKS_COLLECTION).document(str(task_id))
        _commit_verification_transaction(self.db.transaction(), self.db, task_ref, user_id, reward, record)
        logger.info(f"Task {task_id} verified, awarded {amount} tokens to user {user_id}")
        return reward

    def get_balance(self, user_id: int) -> int:
        doc = self.db.collection(USERS_COLLECTION).document(str(user_id)).get(['balance'])
        if not doc.exists:
            return 0
        return int(doc.to_dict().get('balance', 0))

    def get_impact_data(self) -> ImpactData:
        tokens = sum(int(doc.to_dict().get('amount', 0))
                     for doc in self.db.collection(REWARDS_COLLECTION).stream())
        return build_impact_data(self.task_store.list_tasks(), tokens)


class FirestoreUserDirectory:
    def __init__(self, db):
        self.db = db

    def create_user(self, email: str, name: str, password_hash: str) -> Optional[User]:
        email = email.lower()
        if self.db.collection(EMAIL_MAPPINGS_COLLECTION).document(email).get().exists:
            return None
        user = User(id=_next_id(self.db, USERS_COLLECTION), email=email, name=name, passwordHash=password_hash)
        user_data = {**user.model_dump(), 'createdAt': firestore.SERVER_TIMESTAMP}
        created = _create_user_and_mapping_transaction(self.db.transaction(), self.db, user.id, user_data)
        return user if created else None

    def get_user(self, user_id: int) -> Optional[User]:
        doc = self.db.collection(USERS_COLLECTION).document(str(user_id)).get()
        if not doc.exists:
            return None
        return User.model_validate(doc.to_dict())

    def get_user_by_email(self, email: str) -> Optional[User]:
        mapping = self.db.collection(EMAIL_MAPPINGS_COLLECTION).document(email.lower()).get()
        if not mapping.exists:
            return None
        return self.get_user(mapping.to_dict().get('userId'))
