# Services package.
#
# Each module exposes a focused set of functions that encapsulate the
# business logic for one concern:
#
#   article_service: listing cache, detail, search and CRUD for Article
#   comment_service: CRUD for Comment, with the delete report
#   image_service: image variant pipeline and variant storage
#   stats_service: cached site-wide aggregates
#   user_service: CRUD for User
#
# Database-backed functions take an AsyncSession as their first argument;
# those that mutate articles or comments also take the CacheManager they
# must invalidate.
