"""MemberHub - student association membership API"""
