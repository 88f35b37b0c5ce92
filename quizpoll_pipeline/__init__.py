"""Quiz schedule pipeline: sync venue schedules, plan polls, tally votes, register."""
