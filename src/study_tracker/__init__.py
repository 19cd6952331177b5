"""Study tracker: subjects, tasks and optimistic completion sync."""
