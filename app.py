"""
app.py
Streamlit Language Club Membership System.
Run: streamlit run app.py

Sign-in is handled by the club's identity provider; the sidebar
"Acting as" selector stands in for the signed-in user.
"""

from __future__ import annotations

from datetime import date, timedelta

import streamlit as st

import config
import faq
import utils
from assessments import AssessmentBook
from club import ClubActivities
from errors import LifecycleError
from lifecycle import MembershipManager
from models import CLASSES, MAX_LEVEL, PASS_THRESHOLD, PAYMENT_METHODS, ROLES, PaymentDetails
from store import SQLiteStore

st.set_page_config(page_title="Language Club Membership", layout="wide")


@st.cache_resource
def init_once() -> config.Settings:
    # Create tables + health check, once per server process
    return config.startup()


def services(settings: config.Settings) -> tuple[MembershipManager, ClubActivities, AssessmentBook]:
    store = SQLiteStore(settings.db_file)
    return MembershipManager(store), ClubActivities(store), AssessmentBook(store)


def show_frame(records, empty_msg: str):
    if records:
        st.dataframe(utils.records_to_frame(records), use_container_width=True, hide_index=True)
    else:
        st.caption(empty_msg)


def profile_options(profiles) -> dict[str, str]:
    return {f"{p.name or p.email} ({p.role}) - {p.id}": p.id for p in profiles}


def choose_profile(label: str, profiles, key: str):
    options = profile_options(profiles)
    if not options:
        return None
    chosen = st.selectbox(label, list(options.keys()), key=key)
    return options[chosen]


# ---------- pages ----------

def dashboard_page(manager: MembershipManager, club: ClubActivities):
    st.header("📊 Dashboard")

    manager.expire_memberships()
    stats = club.admin_stats()
    profiles = manager.list_profiles()

    now = utils.utc_now()
    in_7 = now + timedelta(days=7)
    active = [p for p in profiles if utils.membership_state(p.membership_expiry, p.membership_active, now) == "active"]
    expiring = [p for p in active if utils.parse_iso(p.membership_expiry) <= in_7]

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Members", stats["total_users"])
    c2.metric("Active memberships", len(active))
    c3.metric("Events", stats["total_events"])
    c4.metric("Check-ins", stats["total_attendance"])

    st.divider()

    st.subheader("Expiring soon (next 7 days)")
    show_frame(expiring, "No memberships expiring in the next 7 days.")

    st.subheader("Pending verifications")
    show_frame(manager.pending_verifications(), "No tutors or committee members waiting for approval.")


def members_page(manager: MembershipManager, acting):
    st.header("👥 Members")

    with st.sidebar:
        st.subheader("Filters")
        role_filter = st.selectbox("Role", ["All"] + list(ROLES))

    profiles = manager.list_profiles(None if role_filter == "All" else role_filter)
    show_frame(profiles, "No members yet.")

    st.divider()

    st.subheader("➕ Add member")
    col1, col2 = st.columns(2)
    with col1:
        user_id = st.text_input("User id (from identity provider)")
        name = st.text_input("Name")
    with col2:
        email = st.text_input("Email")
        role = st.selectbox("Role", list(ROLES), key="new_role")
    if st.button("Create profile", type="primary", disabled=not user_id.strip()):
        try:
            manager.create_profile(user_id.strip(), email, name, role)
            st.success("Profile created.")
            st.rerun()
        except LifecycleError as e:
            st.error(str(e))

    if acting is None or acting.role != "admin":
        st.info("Role changes, verification and class assignment need an admin.")
        return

    st.divider()

    st.subheader("Admin actions")
    selected_id = choose_profile("Member", manager.list_profiles(), key="admin_member")
    if not selected_id:
        return
    m = manager.get_profile(selected_id)
    st.write(f"Role: **{m.role}** | Level: **{m.membership_level}** | Verification: **{m.verification_status}**")

    c1, c2, c3 = st.columns(3)
    with c1:
        new_role = st.selectbox("Change role", list(ROLES), index=list(ROLES).index(m.role))
        if st.button("Update role"):
            try:
                manager.update_role(m.id, new_role)
                st.success("Role updated.")
                st.rerun()
            except LifecycleError as e:
                st.error(str(e))
    with c2:
        approve = st.button("Approve")
        reject = st.button("Reject")
        if approve or reject:
            try:
                manager.verify_user(m.id, approve)
                st.rerun()
            except LifecycleError as e:
                st.error(str(e))
    with c3:
        if m.role == "tutor":
            codes = list(CLASSES.keys())
            code = st.selectbox(
                "Assign class",
                codes,
                index=codes.index(m.assigned_class) if m.assigned_class in codes else 0,
                format_func=lambda c: f"{c} - {CLASSES[c][1]}",
            )
            if st.button("Assign"):
                try:
                    manager.assign_class(m.id, code)
                    st.success(f"Assigned {m.name} to {code}.")
                    st.rerun()
                except LifecycleError as e:
                    st.error(str(e))


def payments_page(manager: MembershipManager):
    st.header("💳 Payments")

    students = manager.list_profiles()
    if not students:
        st.info("No members yet. Add a member first.")
        return

    member_id = choose_profile("Member", students, key="pay_member")
    m = manager.get_profile(member_id)
    state = utils.membership_state(m.membership_expiry, m.membership_active, utils.utc_now())
    st.write(f"Level: **{m.membership_level}** | Membership: **{state}** | Expiry: **{m.membership_expiry or '-'}**")

    st.subheader("Record payment")
    c1, c2, c3, c4 = st.columns([1, 1, 1, 2])
    with c1:
        amount = st.text_input("Amount", value="50")
    with c2:
        method = st.selectbox("Method", list(PAYMENT_METHODS))
    with c3:
        reference = st.text_input("Reference number")
    with c4:
        phone = st.text_input("Payer phone")

    if st.button("Record payment", type="primary"):
        errors = utils.validate_payment_inputs(amount, reference, method)
        if errors:
            for e in errors:
                st.error(e)
        else:
            try:
                manager.record_payment(
                    m.id,
                    PaymentDetails(
                        amount=float(amount),
                        payment_method=method,
                        reference_number=reference.strip() or None,
                        name=m.name,
                        email=m.email,
                        phone=phone.strip() or None,
                    ),
                )
                st.success("Payment recorded. Membership active for 4 months.")
                st.rerun()
            except LifecycleError as e:
                st.error(str(e))

    st.divider()

    st.subheader("Payment history")
    show_frame(manager.list_payments(m.id), "No payments for this member yet.")


def grades_page(manager: MembershipManager, club: ClubActivities, acting):
    st.header("📝 Grades")

    students = manager.list_profiles("student")
    if not students:
        st.info("No students yet.")
        return

    student_id = choose_profile("Student", students, key="grade_student")
    s = manager.get_profile(student_id)

    level = st.selectbox("Level", list(range(1, MAX_LEVEL + 1)), index=s.membership_level - 1)
    stats = manager.get_aggregate_grade_stats(s.id, level)
    c1, c2, c3 = st.columns(3)
    c1.metric("Average grade", f"{stats.average:.1f}%")
    c2.metric("Pass rate", f"{stats.pass_rate:.0f}%")
    c3.metric("Total grades", stats.count)
    if stats.count:
        if stats.average >= PASS_THRESHOLD:
            st.success("On track for level progression.")
        else:
            st.warning(f"An average of {PASS_THRESHOLD}% or higher is expected for level progression.")

    show_frame(manager.list_grades(s.id, level), "No grades assigned yet.")

    if acting is None or acting.role != "tutor":
        st.info("Only tutors can record grades.")
        return

    st.divider()

    st.subheader("Record grade")
    c1, c2 = st.columns(2)
    with c1:
        assessment_type = st.selectbox("Assessment", ["quiz", "oral", "written", "listening", "final"])
    with c2:
        grade = st.number_input("Grade (%)", min_value=0, max_value=100, value=70)
    if st.button("Save grade", type="primary"):
        try:
            manager.record_grade(s.id, assessment_type, int(grade), level, acting.id)
            st.success("Grade recorded.")
            st.rerun()
        except LifecycleError as e:
            st.error(str(e))

    roster = club.tutor_class(acting.id)
    if roster["class"]:
        st.divider()
        st.subheader(f"Class {roster['class']['class_name']} overview")
        all_grades = [g for p in roster["students"] for g in manager.list_grades(p.id)]
        st.dataframe(utils.grade_summary_by_level(all_grades), use_container_width=True, hide_index=True)


def level_up_page(manager: MembershipManager, acting):
    st.header("🎓 Level-up (end of semester)")

    if acting is None or acting.role != "tutor":
        st.info("Only tutors can verify level-ups.")
        return

    students = manager.list_profiles("student")
    if not students:
        st.info("No students yet.")
        return

    student_id = choose_profile("Student", students, key="levelup_student")
    s = manager.get_profile(student_id)
    stats = manager.get_aggregate_grade_stats(s.id, s.membership_level)
    st.write(
        f"Current level: **{s.membership_level}** | Average: **{stats.average:.1f}%** | "
        f"Pass rate: **{stats.pass_rate:.0f}%** over **{stats.count}** grades"
    )

    notes = st.text_area("Tutor notes")
    c1, c2 = st.columns(2)
    decision = None
    with c1:
        if st.button("Approve level-up", type="primary"):
            decision = True
    with c2:
        if st.button("Keep at current level"):
            decision = False

    if decision is not None:
        try:
            result = manager.verify_level_up(s.id, decision, acting.id, notes.strip() or None)
            if result.success:
                st.success(result.message)
            else:
                st.warning(result.message)
        except LifecycleError as e:
            st.error(str(e))

    st.divider()

    st.subheader("Certificates")
    show_frame(manager.list_certificates(s.id), "No certificates yet.")
    st.subheader("Verification history")
    show_frame(manager.list_level_verifications(s.id), "No level decisions recorded yet.")


def assessments_page(book: AssessmentBook, club: ClubActivities, acting):
    st.header("🧪 Assessments")
    st.caption("Practice scores are for feedback only. Levels change only through a tutor's end-of-semester decision.")

    st.subheader("Classes")
    show_frame(club.list_classes(), "No classes have a tutor yet.")

    if acting is None:
        st.info("Pick who you are acting as in the sidebar.")
        return

    if acting.role == "tutor":
        st.divider()
        st.subheader("➕ Create assessment")
        c1, c2 = st.columns(2)
        with c1:
            title = st.text_input("Title", key="assessment_title")
        with c2:
            level = st.selectbox("Level", list(range(1, MAX_LEVEL + 1)), index=(acting.assigned_level or 1) - 1)
        n = int(st.number_input("Questions", min_value=1, max_value=20, value=3))
        questions = []
        for i in range(n):
            q1, q2, q3 = st.columns([2, 2, 1])
            with q1:
                prompt = st.text_input(f"Question {i + 1}", key=f"q_prompt_{i}")
            with q2:
                options = st.text_input("Options (comma separated)", key=f"q_options_{i}")
            with q3:
                correct = st.number_input("Correct option #", min_value=1, value=1, key=f"q_correct_{i}")
            questions.append({
                "prompt": prompt,
                "options": [o.strip() for o in options.split(",") if o.strip()],
                "correct_index": int(correct) - 1,
            })
        if st.button("Create assessment", type="primary", disabled=not title.strip()):
            try:
                book.create_assessment(title, level, questions, acting.id)
                st.success("Assessment created.")
                st.rerun()
            except LifecycleError as e:
                st.error(str(e))
        return

    assessments = book.list_assessments(acting.membership_level)
    if not assessments:
        st.info(f"No assessments for level {acting.membership_level} yet.")
    else:
        st.divider()
        options = {f"{a.title} ({a.assessment_type})": a for a in assessments}
        assessment = options[st.selectbox("Assessment", list(options.keys()))]
        answers = []
        for i, q in enumerate(assessment.questions):
            choice = st.radio(q.prompt, list(q.options), key=f"{assessment.id}_{i}")
            answers.append(list(q.options).index(choice))
        if st.button("Submit answers", type="primary"):
            try:
                submission = book.submit_assessment(assessment.id, acting.id, answers)
                if submission.score >= PASS_THRESHOLD:
                    st.success(f"Score: {submission.score:.1f}%")
                else:
                    st.warning(f"Score: {submission.score:.1f}%")
            except LifecycleError as e:
                st.error(str(e))

    st.subheader("My submissions")
    show_frame(book.list_submissions(user_id=acting.id), "No submissions yet.")


def events_page(club: ClubActivities, acting):
    st.header("📅 Events")

    events = club.list_events()
    show_frame(events, "No events yet.")

    if acting is not None and events:
        st.divider()
        st.subheader("RSVP")
        options = {f"{e.title} ({e.date})": e.id for e in events}
        event_id = options[st.selectbox("Event", list(options.keys()), key="rsvp_event")]
        try:
            if club.is_rsvped(acting.id, event_id):
                if st.button("Cancel RSVP"):
                    club.cancel_rsvp(acting.id, event_id)
                    st.rerun()
            elif st.button("RSVP", type="primary"):
                club.rsvp(acting.id, event_id)
                st.success("See you there!")
                st.rerun()
        except LifecycleError as e:
            st.error(str(e))
        st.caption(f"{len(club.list_event_rsvps(event_id))} RSVPs")

    if acting is None or acting.role not in ("committee", "admin"):
        return

    st.divider()

    st.subheader("➕ Create event")
    col1, col2 = st.columns(2)
    with col1:
        title = st.text_input("Title")
        event_date = st.date_input("Date", value=date.today()).isoformat()
    with col2:
        location = st.text_input("Location")
        session_code = st.text_input("Session code (optional)")
    description = st.text_area("Description")
    errors = utils.validate_event_inputs(title, event_date) if title else []
    for e in errors:
        st.error(e)
    if st.button("Create event", type="primary", disabled=not title or bool(errors)):
        try:
            club.create_event(title, description, event_date, location, acting.id, session_code)
            st.success("Event created.")
            st.rerun()
        except LifecycleError as e:
            st.error(str(e))

    if events:
        st.subheader("Delete event")
        options = {f"{e.title} ({e.date})": e.id for e in events}
        label = st.selectbox("Event to delete", list(options.keys()), key="delete_event")
        confirm = st.checkbox("Confirm delete", value=False)
        if st.button("Delete", disabled=not confirm):
            try:
                club.delete_event(options[label])
                st.success("Event deleted.")
                st.rerun()
            except LifecycleError as e:
                st.error(str(e))


def check_in_page(club: ClubActivities, acting):
    st.header("✅ Check-in")

    if acting is None:
        st.info("Pick who you are acting as in the sidebar.")
        return

    code = st.text_input("Session code")
    kind = st.radio("Type", ["event", "class"], horizontal=True)
    if st.button("Check in", type="primary", disabled=not code.strip()):
        try:
            if kind == "event":
                record = club.check_in(acting.id, session_code=code)
                st.success(f"Checked in to {record.event_title}.")
            else:
                class_name = CLASSES.get(code.strip(), (None, code.strip()))[1]
                club.record_class_attendance(acting.id, code.strip(), class_name)
                st.success("Class attendance recorded.")
        except LifecycleError as e:
            st.error(str(e))

    st.divider()

    st.subheader("My attendance")
    show_frame(club.list_attendance(user_id=acting.id), "No check-ins yet.")


def reports_page(manager: MembershipManager, settings: config.Settings):
    st.header("🧾 Reports")

    st.subheader("Export members to CSV")
    members = manager.list_profiles()
    if members:
        st.download_button(
            "Download members.csv",
            data=utils.records_to_csv_bytes(members),
            file_name="members.csv",
            mime="text/csv",
        )
    else:
        st.caption("No members to export.")

    st.divider()

    st.subheader("Export payments to CSV")
    payments = manager.list_payments()
    if payments:
        st.download_button(
            "Download payments.csv",
            data=utils.records_to_csv_bytes(payments),
            file_name="payments.csv",
            mime="text/csv",
        )
    else:
        st.caption("No payments to export.")

    st.divider()

    st.subheader("Revenue summary by month")
    df = utils.revenue_summary_by_month(settings.db_file)
    st.dataframe(df, use_container_width=True, hide_index=True)


def help_page():
    st.header("💬 Help")

    question = st.text_input("Ask a question")
    if question.strip():
        st.info(faq.answer(question))


def settings_page(manager: MembershipManager, club: ClubActivities, settings: config.Settings):
    st.header("⚙️ Settings")

    st.write(f"Database: `{settings.db_file}`")
    st.write("Storage check: " + ("✅ ready" if settings.storage_ready else "❌ failed"))

    st.divider()

    st.subheader("Sample data")
    st.caption("Insert an admin, a tutor, 3 students, payments, grades and an event (adds new rows each run).")
    if st.button("Insert sample data"):
        try:
            utils.insert_sample_data(manager, club)
            st.success("Sample data inserted.")
            st.rerun()
        except LifecycleError as e:
            st.error(str(e))


def main_app(settings: config.Settings):
    manager, club, book = services(settings)

    st.sidebar.title("🏮 Language Club")
    profiles = manager.list_profiles()
    acting_id = choose_profile("Acting as", profiles, key="acting_as") if profiles else None
    acting = manager.get_profile(acting_id) if acting_id else None
    if acting is not None and not acting.verified:
        st.sidebar.warning("This account is waiting for admin verification.")
        acting = None

    pages = ["Dashboard", "Members", "Payments", "Grades", "Level-up", "Assessments", "Events", "Check-in", "Reports", "Help", "Settings"]
    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"
    st.session_state.page = st.sidebar.radio("Navigate", pages, index=pages.index(st.session_state.page))

    if st.session_state.page == "Dashboard":
        dashboard_page(manager, club)
    elif st.session_state.page == "Members":
        members_page(manager, acting)
    elif st.session_state.page == "Payments":
        payments_page(manager)
    elif st.session_state.page == "Grades":
        grades_page(manager, club, acting)
    elif st.session_state.page == "Level-up":
        level_up_page(manager, acting)
    elif st.session_state.page == "Assessments":
        assessments_page(book, club, acting)
    elif st.session_state.page == "Events":
        events_page(club, acting)
    elif st.session_state.page == "Check-in":
        check_in_page(club, acting)
    elif st.session_state.page == "Reports":
        reports_page(manager, settings)
    elif st.session_state.page == "Help":
        help_page()
    elif st.session_state.page == "Settings":
        settings_page(manager, club, settings)


# --------- App entry ---------

def run():
    settings = init_once()
    if not settings.storage_ready:
        st.error(f"Database at {settings.db_file} is not available. Check CLUB_DB_FILE and restart.")
        return
    main_app(settings)


if __name__ == "__main__":
    run()
