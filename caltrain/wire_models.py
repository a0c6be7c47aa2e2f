# caltrain/wire_models.py
"""
511.org のレスポンス JSON に対応する中間レコード

必要なフィールドだけを定義し、それ以外は無視する。
511 は要素が1つのとき配列ではなくオブジェクトを返すことがあるので、
配列フィールドは OneOrMany で受ける。
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _ensure_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Ref(WireModel):
    ref: str = ""


# ============================================================================
# Timetable
# ============================================================================

class CallTime(WireModel):
    time: str = Field(alias="Time")
    days_offset: Optional[str] = Field(default=None, alias="DaysOffset")


class WireCall(WireModel):
    order: Annotated[str, BeforeValidator(str)]
    stop_point_ref: Ref = Field(alias="ScheduledStopPointRef")
    arrival: Optional[CallTime] = Field(default=None, alias="Arrival")
    departure: Optional[CallTime] = Field(default=None, alias="Departure")


class WireCalls(WireModel):
    call: Annotated[List[WireCall], BeforeValidator(_ensure_list)] = Field(
        default_factory=list, alias="Call"
    )


class JourneyPatternView(WireModel):
    direction_ref: Ref = Field(default_factory=Ref, alias="DirectionRef")


class ServiceJourney(WireModel):
    id: str
    pattern: JourneyPatternView = Field(
        default_factory=JourneyPatternView, alias="JourneyPatternView"
    )
    calls: WireCalls = Field(default_factory=WireCalls)


class VehicleJourneys(WireModel):
    journeys: Annotated[List[ServiceJourney], BeforeValidator(_ensure_list)] = Field(
        default_factory=list, alias="ServiceJourney"
    )


class DayTypeRefs(WireModel):
    day_type_ref: Ref = Field(default_factory=Ref, alias="DayTypeRef")


class AvailabilityCondition(WireModel):
    id: str = ""
    from_date: Optional[str] = Field(default=None, alias="FromDate")
    to_date: Optional[str] = Field(default=None, alias="ToDate")
    day_types: DayTypeRefs = Field(default_factory=DayTypeRefs, alias="dayTypes")


class FrameValidityConditions(WireModel):
    availability: AvailabilityCondition = Field(
        default_factory=AvailabilityCondition, alias="AvailabilityCondition"
    )


class WireTimetableFrame(WireModel):
    id: str = ""
    name: str = Field(alias="Name")
    validity: FrameValidityConditions = Field(
        default_factory=FrameValidityConditions, alias="frameValidityConditions"
    )
    vehicle_journeys: VehicleJourneys = Field(
        default_factory=VehicleJourneys, alias="vehicleJourneys"
    )


class PropertyOfDay(WireModel):
    days_of_week: str = Field(default="", alias="DaysOfWeek")


class DayTypeProperties(WireModel):
    property_of_day: PropertyOfDay = Field(default_factory=PropertyOfDay, alias="PropertyOfDay")


class DayType(WireModel):
    id: str
    name: str = Field(default="", alias="Name")
    properties: DayTypeProperties = Field(default_factory=DayTypeProperties)


class DayTypes(WireModel):
    day_type: Annotated[List[DayType], BeforeValidator(_ensure_list)] = Field(
        default_factory=list, alias="DayType"
    )


class ServiceCalendarFrame(WireModel):
    id: str = ""
    day_types: DayTypes = Field(default_factory=DayTypes, alias="dayTypes")


class TimetableContent(WireModel):
    service_calendar: ServiceCalendarFrame = Field(
        default_factory=ServiceCalendarFrame, alias="ServiceCalendarFrame"
    )
    frames: Annotated[List[WireTimetableFrame], BeforeValidator(_ensure_list)] = Field(
        default_factory=list, alias="TimetableFrame"
    )


class TimetableResponse(WireModel):
    content: TimetableContent = Field(alias="Content")


# ============================================================================
# Stations
# ============================================================================

class Location(WireModel):
    longitude: Optional[float] = Field(default=None, alias="Longitude")
    latitude: Optional[float] = Field(default=None, alias="Latitude")


class ScheduledStopPoint(WireModel):
    id: str
    name: str = Field(alias="Name")
    location: Location = Field(default_factory=Location, alias="Location")
    stop_type: str = Field(default="", alias="StopType")


class StationDataObjects(WireModel):
    stop_points: Annotated[List[ScheduledStopPoint], BeforeValidator(_ensure_list)] = Field(
        default_factory=list, alias="ScheduledStopPoint"
    )


class StationContents(WireModel):
    data_objects: StationDataObjects = Field(alias="dataObjects")


class StationsResponse(WireModel):
    contents: StationContents = Field(alias="Contents")


# ============================================================================
# Holidays
# ============================================================================

class HolidayCondition(WireModel):
    id: str = ""
    from_date: str = Field(alias="FromDate")
    to_date: Optional[str] = Field(default=None, alias="ToDate")


class HolidayContent(WireModel):
    conditions: Annotated[List[HolidayCondition], BeforeValidator(_ensure_list)] = Field(
        default_factory=list, alias="AvailabilityConditions"
    )


class HolidaysResponse(WireModel):
    content: HolidayContent = Field(alias="Content")


# ============================================================================
# StopMonitoring
# ============================================================================

class MonitoredCall(WireModel):
    stop_point_ref: Optional[str] = Field(default=None, alias="StopPointRef")
    stop_point_name: str = Field(default="", alias="StopPointName")
    aimed_arrival: Optional[datetime] = Field(default=None, alias="AimedArrivalTime")
    expected_arrival: Optional[datetime] = Field(default=None, alias="ExpectedArrivalTime")
    aimed_departure: Optional[datetime] = Field(default=None, alias="AimedDepartureTime")
    expected_departure: Optional[datetime] = Field(default=None, alias="ExpectedDepartureTime")


class FramedVehicleJourneyRef(WireModel):
    dated_vehicle_journey_ref: str = Field(default="", alias="DatedVehicleJourneyRef")


class MonitoredVehicleJourney(WireModel):
    line_ref: Optional[str] = Field(default=None, alias="LineRef")
    direction_ref: Optional[str] = Field(default=None, alias="DirectionRef")
    framed_ref: FramedVehicleJourneyRef = Field(
        default_factory=FramedVehicleJourneyRef, alias="FramedVehicleJourneyRef"
    )
    monitored_call: MonitoredCall = Field(default_factory=MonitoredCall, alias="MonitoredCall")


class MonitoredStopVisit(WireModel):
    journey: MonitoredVehicleJourney = Field(alias="MonitoredVehicleJourney")


class StopMonitoringDelivery(WireModel):
    visits: Annotated[List[MonitoredStopVisit], BeforeValidator(_ensure_list)] = Field(
        default_factory=list, alias="MonitoredStopVisit"
    )


class ServiceDelivery(WireModel):
    stop_monitoring: StopMonitoringDelivery = Field(
        default_factory=StopMonitoringDelivery, alias="StopMonitoringDelivery"
    )


class StopMonitoringResponse(WireModel):
    service_delivery: ServiceDelivery = Field(alias="ServiceDelivery")
