"""
faq.py
Canned answers for the help page, picked by keyword.
"""

from __future__ import annotations

DEFAULT_ANSWER = (
    "I'm here to help! Please ask me about:\n"
    "- Membership fees and registration\n"
    "- Class schedules and locations\n"
    "- Events and activities\n"
    "- Payment methods\n"
    "- Level assessments"
)

# First matching entry wins
ANSWERS = [
    (("fee", "price", "cost"),
     "Membership fee is RM50 per semester for students. Committee members and tutors "
     "get free access after admin verification."),
    (("level", "assessment"),
     "There are 5 proficiency levels. You start at Level 1; your tutor reviews your grades "
     "at the end of each semester and approves your move to the next level."),
    (("event", "activity"),
     "Check the Events page for upcoming activities. You can RSVP to events and check in "
     "with the session code on the day."),
    (("checkin", "check in", "check-in", "attendance"),
     "You can check in to events and classes using the session code provided by your tutor "
     "or shown at the event."),
    (("payment", "pay"),
     "Payments can be made by cash, card or bank transfer. Once paid, your membership is "
     "active for 4 months."),
    (("tutor", "teacher"),
     "Our tutors are verified by admins. Tutors sign up, wait for admin approval, and are then "
     "assigned a class where they can grade students."),
    (("committee",),
     "Committee members can create events and help manage club activities. "
     "Sign up requires admin verification."),
]


def answer(question: str) -> str:
    q = question.lower()
    for keywords, reply in ANSWERS:
        if any(k in q for k in keywords):
            return reply
    return DEFAULT_ANSWER
