"""
Database Package for the Persona Remote Store

This package provides:
- SQLAlchemy ORM models for queries, person profiles, category records,
  history, favorites and submissions
- Session provider with commit/rollback scopes
- Repository pattern for data access
- Alembic integration for migrations
- Storage and provider timing metrics
"""

from database.models import (
    Base,
    UserProfile,
    SearchQuery,
    PersonProfile,
    SearchResult,
    Address,
    PhoneNumber,
    SocialMedia,
    CriminalRecord,
    Relative,
    PropertyRecord,
    SearchHistory,
    FavoriteSearch,
    PersonInfoSubmission,
    SubmissionStatus,
    CATEGORY_MODELS,
    SUBMISSION_CHILD_MODELS,
)
from database.connection import (
    DatabaseSessionProvider,
    DatabaseSettings,
    get_db_provider,
    init_db,
    close_db,
    create_test_provider,
    create_retry_decorator,
    db_retry,
)
from database.repositories import (
    UserProfileRepository,
    SearchQueryRepository,
    PersonProfileRepository,
    CategoryRecordRepository,
    SearchResultRepository,
    SearchHistoryRepository,
    FavoriteRepository,
    SubmissionRepository,
    RepositoryError,
    EntityNotFoundError,
    DuplicateEntityError,
)
from database.monitoring import (
    query_timer,
    provider_timer,
    get_db_metrics,
    reset_metrics,
)

__all__ = [
    # Models
    'Base',
    'UserProfile',
    'SearchQuery',
    'PersonProfile',
    'SearchResult',
    'Address',
    'PhoneNumber',
    'SocialMedia',
    'CriminalRecord',
    'Relative',
    'PropertyRecord',
    'SearchHistory',
    'FavoriteSearch',
    'PersonInfoSubmission',
    'SubmissionStatus',
    'CATEGORY_MODELS',
    'SUBMISSION_CHILD_MODELS',
    # Connection
    'DatabaseSessionProvider',
    'DatabaseSettings',
    'get_db_provider',
    'init_db',
    'close_db',
    'create_test_provider',
    'create_retry_decorator',
    'db_retry',
    # Repositories
    'UserProfileRepository',
    'SearchQueryRepository',
    'PersonProfileRepository',
    'CategoryRecordRepository',
    'SearchResultRepository',
    'SearchHistoryRepository',
    'FavoriteRepository',
    'SubmissionRepository',
    'RepositoryError',
    'EntityNotFoundError',
    'DuplicateEntityError',
    # Monitoring
    'query_timer',
    'provider_timer',
    'get_db_metrics',
    'reset_metrics',
]
