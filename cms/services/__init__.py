# Services package.
#
#   article_service  — create / detail / destroy / update / update_browse /
#                      list for Article, with Admin and Category attached
#
# Service functions accept an AsyncSession as their first argument so
# that the router layer controls the transaction boundary via the
# ``get_db`` dependency, and return a ``cms.errors.Result``.
