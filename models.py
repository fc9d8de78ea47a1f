from __future__ import annotations

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text, UniqueConstraint

from db import Base


class UserRow(Base):
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Indexed but not unique: duplicates are a caller concern unless strict identity is on.
    username = Column(String, nullable=False, index=True)
    password = Column(Text, nullable=False)
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False)
    email = Column(String, nullable=False, index=True)
    company_email = Column(Text, nullable=True)
    role = Column(String, nullable=False, default="employee")
    gender = Column(String, nullable=True)
    department = Column(Text, nullable=True)
    position = Column(Text, nullable=True)
    job_area = Column(Text, nullable=True)
    avatar = Column(Text, nullable=True)
    last_login = Column(DateTime(timezone=True), nullable=True)

    linkedin = Column(Text, nullable=True)
    github = Column(Text, nullable=True)
    behance = Column(Text, nullable=True)
    dribbble = Column(Text, nullable=True)
    twitter = Column(Text, nullable=True)
    website = Column(Text, nullable=True)

    pan_number = Column(String, nullable=True)
    aadhaar_number = Column(String, nullable=True)
    passport_number = Column(String, nullable=True)

    pf_number = Column(String, nullable=True)
    uan_number = Column(String, nullable=True)
    bank_account_number = Column(String, nullable=True)
    bank_name = Column(Text, nullable=True)
    ifsc_code = Column(String, nullable=True)

    phone_number = Column(String, nullable=True)
    emergency_contact_name = Column(Text, nullable=True)
    emergency_contact_number = Column(String, nullable=True)
    emergency_contact_relation = Column(Text, nullable=True)

    current_address = Column(Text, nullable=True)
    permanent_address = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    state = Column(Text, nullable=True)
    country = Column(Text, nullable=True)
    pincode = Column(String, nullable=True)

    employee_id = Column(String, nullable=True)
    joining_date = Column(DateTime(timezone=True), nullable=True)
    probation_end_date = Column(DateTime(timezone=True), nullable=True)
    employment_type = Column(String, nullable=True)
    work_location = Column(String, nullable=True)


class OnboardingStepRow(Base):
    __tablename__ = "onboarding_steps"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    order = Column("order", Integer, nullable=False, index=True)


class EmployeeOnboardingRow(Base):
    __tablename__ = "employee_onboarding"
    __table_args__ = (
        UniqueConstraint("user_id", "step_id", name="uq_employee_onboarding_user_step"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    # No foreign key: a dangling step id is reported when progress is read.
    step_id = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="not_started")
    completed_at = Column(DateTime(timezone=True), nullable=True)


class DocumentCategoryRow(Base):
    __tablename__ = "document_categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    description = Column(Text, nullable=True)


class DocumentRow(Base):
    __tablename__ = "documents"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    filename = Column(Text, nullable=False)
    filesize = Column(Integer, nullable=False)
    mime_type = Column(String, nullable=False)
    category_id = Column(Integer, nullable=True, index=True)
    uploaded_by = Column(Integer, nullable=False, index=True)
    uploaded_at = Column(DateTime(timezone=True), nullable=False)
    is_public = Column(Boolean, nullable=False, default=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    metadata_ = Column("metadata", JSON, nullable=True)


class EventRow(Base):
    __tablename__ = "events"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False, index=True)
    end_date = Column(DateTime(timezone=True), nullable=False)
    location = Column(Text, nullable=True)
    category = Column(Text, nullable=True)
    created_by = Column(Integer, nullable=False)


class TimeOffBalanceRow(Base):
    __tablename__ = "time_off_balances"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, unique=True)
    vacation_total = Column(Integer, nullable=False, default=20)
    vacation_used = Column(Integer, nullable=False, default=0)
    sick_total = Column(Integer, nullable=False, default=10)
    sick_used = Column(Integer, nullable=False, default=0)
    personal_total = Column(Integer, nullable=False, default=5)
    personal_used = Column(Integer, nullable=False, default=0)


class ReportDashboardRow(Base):
    __tablename__ = "report_dashboards"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    name = Column(Text, nullable=False)
    layout = Column(JSON, nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
