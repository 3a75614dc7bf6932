"""Calendar property names and token values written by alarmcal.

All application custom properties are named ``X-KDE-KALARM-<name>``.
"""

APPNAME = "KALARM"
PREFIX = f"X-KDE-{APPNAME}-"

CALENDAR_VERSION = "2.7.0"
MIN_CALENDAR_VERSION = "2.0.0"
PRODID_TEMPLATE = "-//K Desktop Environment//NONSGML {program} {version}//EN"

# Token separators
SC = ";"
TYPE_SEPARATOR = ","


def x_name(name: str) -> str:
    """Full property name for an application custom property."""
    return PREFIX + name


# Calendar properties
VERSION_PROPERTY = x_name("VERSION")

# Event properties
STATUS_PROPERTY = x_name("TYPE")
FLAGS_PROPERTY = x_name("FLAGS")
NEXT_RECUR_PROPERTY = x_name("NEXTRECUR")
REPEAT_PROPERTY = x_name("REPEAT")
LOG_PROPERTY = x_name("LOG")

# Alarm properties
TYPE_PROPERTY = x_name("TYPE")
NEXT_REPEAT_PROPERTY = x_name("NEXTREPEAT")
FONT_COLOUR_PROPERTY = x_name("FONTCOLOR")
VOLUME_PROPERTY = x_name("VOLUME")
ALARM_FLAGS_PROPERTY = x_name("FLAGS")

# Event categories (X-KDE-KALARM-TYPE on the event)
ACTIVE_STATUS = "ACTIVE"
ARCHIVED_STATUS = "ARCHIVED"
TEMPLATE_STATUS = "TEMPLATE"
DISPLAYING_STATUS = "DISPLAYING"
DISABLED_STATUS = "DISABLED"
DISP_DEFER = "DEFER"
DISP_EDIT = "EDIT"

# UID markers
ARCHIVED_UID = "-exp-"
DISPLAYING_UID = "-disp-"
TEMPLATE_UID = "-tmpl-"  # only in calendars without a TYPE property

# Event flag tokens
DATE_ONLY_FLAG = "DATE"
LOCAL_ZONE_FLAG = "LOCAL"
CONFIRM_ACK_FLAG = "ACKCONF"
EMAIL_BCC_FLAG = "BCC"
KORGANIZER_FLAG = "KORG"
EXCLUDE_HOLIDAYS_FLAG = "EXHOLIDAYS"
WORK_TIME_ONLY_FLAG = "WORKTIME"
LATE_CANCEL_FLAG = "LATECANCEL"
AUTO_CLOSE_FLAG = "LATECLOSE"
REMINDER_FLAG = "REMINDER"
REMINDER_ONCE_FLAG = "ONCE"
DEFER_FLAG = "DEFER"
TEMPL_AFTER_TIME_FLAG = "TMPLAFTTIME"
KMAIL_ITEM_FLAG = "KMAIL"
ARCHIVE_FLAG = "ARCHIVE"
AT_LOGIN_FLAG = "LOGIN"

# Alarm TYPE values
FILE_TYPE = "FILE"
AT_LOGIN_TYPE = "LOGIN"
REMINDER_TYPE = "REMINDER"
TIME_DEFERRAL_TYPE = "DEFERRAL"
DATE_DEFERRAL_TYPE = "DATE_DEFERRAL"
DISPLAYING_TYPE = "DISPLAYING"
PRE_ACTION_TYPE = "PRE"
POST_ACTION_TYPE = "POST"
SOUND_REPEAT_TYPE = "SOUNDREPEAT"

# Alarm flag tokens
HIDDEN_REMINDER_FLAG = "HIDE"
EMAIL_ID_FLAG = "EMAILID"
SPEAK_FLAG = "SPEAK"
EXEC_ON_DEFERRAL_FLAG = "EXECDEFER"
CANCEL_ON_ERROR_FLAG = "ERRCANCEL"
DONT_SHOW_ERROR_FLAG = "ERRNOSHOW"

# X-KDE-KALARM-LOG values
XTERM_URL = "xterm:"
DISPLAY_URL = "display:"

NEXT_RECUR_DATE_FORMAT = "%Y%m%d"
NEXT_RECUR_DATETIME_FORMAT = "%Y%m%dT%H%M%S"
