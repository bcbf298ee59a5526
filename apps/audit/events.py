class AuditEvents:
    # Accounts
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    USER_REGISTERED = "user_registered"
    ACCESS_REQUESTED = "access_requested"
    PASSWORD_CHANGED = "password_changed"

    # Departments
    DEPARTMENT_ACCESS_GRANTED = "department_access_granted"
    DEPARTMENT_ACCESS_DENIED = "department_access_denied"

    # Payroll
    PAYSLIP_CREATED = "payslip_created"
    PAYSLIP_UPDATED = "payslip_updated"
    PAYSLIP_STATUS_CHANGED = "payslip_status_changed"
    PAYSLIP_REFERENCE_ASSIGNED = "payslip_reference_assigned"
