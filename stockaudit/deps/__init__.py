# Marks `stockaudit.deps` as a real package so imports like
# `from stockaudit.deps.auth import require_identity` work reliably.
