from .base import WithTimestamps
from .id import CourseID, GroupID


class Course(WithTimestamps):
    course_id: CourseID
    title: str


class Group(WithTimestamps):
    group_id: GroupID
    course_id: CourseID
    name: str
