"""
Engine signals for loosely coupled listeners (achievement subsystem, analytics).

Signals are sent only after the owning transaction has committed.
"""
from blinker import Namespace

_signals = Namespace()

# Sent when a session commit raises the user's level.
# sender: user_id (int); kwargs: old_level, new_level, xp
level_up = _signals.signal('level-up')

# Sent for streak and XP milestones.
# sender: user_id (int); kwargs: celebration (CelebrationData)
milestone_reached = _signals.signal('milestone-reached')

# Sent after an answer is recorded and the review schedule committed.
# sender: user_id (int); kwargs: card_id, correct, mastery_level
answer_recorded = _signals.signal('answer-recorded')
