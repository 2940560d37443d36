"""
Submission Store

Crowdsourced person data with proof references, reviewed by a verifier.
Submissions exist only in the Remote Store; guest users cannot submit.
The whole payload is validated before anything is written, and the
submission is inserted with all of its child rows in one transaction.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from database.connection import DatabaseSessionProvider
from database.models import PersonInfoSubmission, SubmissionStatus
from database.monitoring import query_timer
from database.repositories import RepositoryError, SubmissionRepository, UserProfileRepository
from errors import AuthRequiredError, NotFoundError, StorageError, ValidationError
from log_utils import mask_name
from search.normalizers import as_bool, as_int, as_text
from storage.entities import Identity, Submission
from storage.mode import GuestMode, Mode, RemoteMode
from storage.remote import row_to_dict

logger = logging.getLogger(__name__)

REVIEW_STATUSES = (SubmissionStatus.APPROVED.value, SubmissionStatus.REJECTED.value)


# ============================================
# PAYLOAD VALIDATION
# ============================================

def _rows(payload: Mapping[str, Any], key: str) -> List[Mapping[str, Any]]:
    value = payload.get(key) or []
    if not isinstance(value, list):
        raise ValidationError(f"{key} must be a list", field=key)
    for item in value:
        if not isinstance(item, Mapping):
            raise ValidationError(f"Each entry of {key} must be an object", field=key)
    return value


def _address(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        'street': as_text(row.get('street')),
        'city': as_text(row.get('city')),
        'state': as_text(row.get('state')),
        'zip_code': as_text(row.get('zip_code')),
        'country': as_text(row.get('country')) or 'USA',
        'is_current': bool(as_bool(row.get('is_current'))),
        'start_date': as_text(row.get('start_date')),
        'end_date': as_text(row.get('end_date')),
    }


def _phone(row: Mapping[str, Any]) -> Dict[str, Any]:
    number = as_text(row.get('number'))
    if not number:
        raise ValidationError("Phone number is required", field='phone_numbers.number')
    is_current = as_bool(row.get('is_current'))
    return {
        'number': number,
        'type': as_text(row.get('type')) or 'mobile',
        'is_current': True if is_current is None else is_current,
        'last_verified': as_text(row.get('last_verified')),
    }


def _social(row: Mapping[str, Any]) -> Dict[str, Any]:
    platform = as_text(row.get('platform'))
    if not platform:
        raise ValidationError("Social media platform is required", field='social_media.platform')
    return {
        'platform': platform,
        'username': as_text(row.get('username')),
        'url': as_text(row.get('url')),
    }


def _criminal(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        'case_number': as_text(row.get('case_number')),
        'charge': as_text(row.get('charge')) or '',
        'status': as_text(row.get('status')) or 'unknown',
        'record_date': as_text(row.get('record_date')),
        'jurisdiction': as_text(row.get('jurisdiction')),
    }


def _relative(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        'first_name': as_text(row.get('first_name')) or '',
        'last_name': as_text(row.get('last_name')),
        'relationship': as_text(row.get('relationship')) or 'unknown',
        'age': as_int(row.get('age')),
    }


def _proof(row: Mapping[str, Any]) -> Dict[str, Any]:
    storage_path = as_text(row.get('storage_path'))
    file_name = as_text(row.get('file_name'))
    if not storage_path or not file_name:
        raise ValidationError(
            "Proof references need storage_path and file_name",
            field='proofs',
            suggestion="Upload the proof document first and pass its storage path."
        )
    return {
        'storage_path': storage_path,
        'file_name': file_name,
        'content_type': as_text(row.get('content_type')) or 'application/octet-stream',
    }


CHILD_BUILDERS = {
    'addresses': _address,
    'phone_numbers': _phone,
    'social_media': _social,
    'criminal_records': _criminal,
    'relatives': _relative,
    'proofs': _proof,
}


def validate_submission(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Check a submission payload and fill child defaults.

    Returns:
        dict with first_name, last_name, age, person_profile_id and children

    Raises:
        ValidationError: missing names, malformed children or no proof
    """
    first_name = (as_text(payload.get('first_name')) or '').strip()
    last_name = (as_text(payload.get('last_name')) or '').strip()
    if not first_name:
        raise ValidationError("First name is required", field='first_name')
    if not last_name:
        raise ValidationError("Last name is required", field='last_name')

    children: Dict[str, List[Dict[str, Any]]] = {}
    for key, build in CHILD_BUILDERS.items():
        rows = [build(row) for row in _rows(payload, key)]
        if rows:
            children[key] = rows

    past_names = payload.get('past_names') or []
    if not isinstance(past_names, list):
        raise ValidationError("past_names must be a list", field='past_names')
    names = [as_text(n.get('name') if isinstance(n, Mapping) else n) for n in past_names]
    if any(not n for n in names):
        raise ValidationError("Past names cannot be empty", field='past_names')
    if names:
        children['past_names'] = [{'name': n} for n in names]

    if not children.get('proofs'):
        raise ValidationError(
            "At least one proof document is required",
            field='proofs',
            suggestion="Attach a document that supports the submitted information."
        )

    return {
        'first_name': first_name,
        'last_name': last_name,
        'age': as_int(payload.get('age')),
        'person_profile_id': as_text(payload.get('person_profile_id')),
        'children': children,
    }


def submission_entity(row: PersonInfoSubmission, include_children: bool = True) -> Submission:
    children = {}
    if include_children:
        children = {
            name: [row_to_dict(child) for child in getattr(row, name)]
            for name in ('addresses', 'phone_numbers', 'social_media', 'criminal_records',
                         'relatives', 'past_names', 'proofs')
        }
    return Submission(
        id=str(row.id),
        submitter_id=row.user_id,
        first_name=row.first_name,
        last_name=row.last_name,
        status=row.status,
        person_profile_id=str(row.person_profile_id) if row.person_profile_id else None,
        age=row.age,
        reviewer_notes=row.reviewer_notes,
        verified_at=row.verified_at,
        verified_by=row.verified_by,
        created_at=row.created_at,
        children=children,
    )


# ============================================
# SUBMISSION STORE
# ============================================

class SubmissionStore:
    """Creates, lists and reviews person-info submissions"""

    def __init__(self, db_provider: DatabaseSessionProvider, pending_limit: int = 50):
        self.db = db_provider
        self.pending_limit = pending_limit

    def _run(self, operation: str, work):
        with query_timer(operation):
            try:
                with self.db.session_scope() as session:
                    return work(session)
            except RepositoryError as e:
                logger.error("Repository error during %s: %s", operation, e)
                raise StorageError(f"{operation} failed: {e}")
            except SQLAlchemyError as e:
                logger.error("Database error during %s: %s", operation, e)
                raise StorageError(f"{operation} failed: {e}")

    def create_submission(self, payload: Mapping[str, Any], mode: Mode) -> Dict[str, str]:
        """
        Store a pending submission.

        Raises:
            ValidationError: guest mode, or an invalid payload
            AuthRequiredError: remote mode without a signed-in user
        """
        if isinstance(mode, GuestMode):
            raise ValidationError(
                "Guest mode cannot submit verified information",
                field='mode',
                suggestion="Sign in to submit information."
            )
        if not isinstance(mode, RemoteMode) or mode.identity is None:
            raise AuthRequiredError()
        identity = mode.identity
        data = validate_submission(payload)

        def work(session):
            UserProfileRepository(session).ensure(identity.id, identity.email)
            row = SubmissionRepository(session).create(
                user_id=identity.id,
                first_name=data['first_name'],
                last_name=data['last_name'],
                age=data['age'],
                person_profile_id=data['person_profile_id'],
                children=data['children'],
            )
            return str(row.id)

        submission_id = self._run("create_submission", work)
        logger.info(
            "Submission %s created for %s %s with %d proof(s)",
            submission_id, mask_name(data['first_name']), mask_name(data['last_name']),
            len(data['children']['proofs'])
        )
        return {'id': submission_id}

    def get_approved_submissions(
        self,
        person_profile_id: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Approved submissions for a profile id, or else for an exact name."""
        return self._run(
            "get_approved_submissions",
            lambda session: [
                submission_entity(row).to_dict()
                for row in SubmissionRepository(session).list_approved(person_profile_id, first_name, last_name)
            ]
        )

    def get_pending_submissions(self) -> List[Dict[str, Any]]:
        return self._run(
            "get_pending_submissions",
            lambda session: [
                submission_entity(row, include_children=False).to_dict()
                for row in SubmissionRepository(session).list_pending(self.pending_limit)
            ]
        )

    def update_submission_status(
        self,
        submission_id: str,
        status: str,
        reviewer: Optional[Identity],
        notes: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Approve or reject a submission.

        Approval stamps verified_at/verified_by; rejection clears them. Once
        reviewed, a submission's status is fixed but its notes may change.

        Raises:
            ValidationError: unknown status, or a status change after review
            AuthRequiredError: no reviewer identity
            NotFoundError: no such submission
        """
        if status not in REVIEW_STATUSES:
            raise ValidationError(
                f"Status must be one of {', '.join(REVIEW_STATUSES)}",
                field='status'
            )
        if reviewer is None:
            raise AuthRequiredError()

        def work(session):
            row = SubmissionRepository(session).get(submission_id)
            if row is None:
                raise NotFoundError(f"Submission not found: {submission_id}")

            if row.status != SubmissionStatus.PENDING.value:
                if row.status != status:
                    raise ValidationError(
                        f"Submission was already {row.status}",
                        field='status',
                        suggestion="Only reviewer notes can change after review."
                    )
            else:
                row.status = status
                if status == SubmissionStatus.APPROVED.value:
                    row.verified_at = datetime.now(timezone.utc)
                    row.verified_by = reviewer.id
                else:
                    row.verified_at = None
                    row.verified_by = None

            if notes is not None:
                row.reviewer_notes = notes or None
            session.flush()
            return submission_entity(row).to_dict()

        result = self._run("update_submission_status", work)
        logger.info("Submission %s is %s", submission_id, result['status'])
        return result
