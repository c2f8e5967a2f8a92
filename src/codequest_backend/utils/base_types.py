import typing

UserId = typing.NewType("UserId", str)

ChapterIndex = typing.NewType("ChapterIndex", int)
LessonIndex = typing.NewType("LessonIndex", int)
StageIndex = typing.NewType("StageIndex", int)
CodingStageIndex = typing.NewType("CodingStageIndex", int)

StageKey = typing.NewType("StageKey", str)
LessonKey = typing.NewType("LessonKey", str)
IsoTimestamp = typing.NewType("IsoTimestamp", str)
