"""pagesync - workspace configuration sync for git-backed content repositories."""
